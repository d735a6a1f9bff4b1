from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler
from app.config import settings
from app.database.redis import close_redis
from app.errors import PixeliftError
from app.middleware.rate_limit import build_rate_limiter, limiter
from app.routers import admin_webhooks, ai_video, api_keys, images, processed_images, user
from app.services.email_service import EmailSender
from app.services.inference_client import InferenceClient
from app.services.notifications import NotificationDispatcher
from app.services.pipeline import ImagePipeline
from app.services.storage import LocalStorage
from app.services.video_jobs import VideoJobService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.inference.aclose()
    if settings.RATE_LIMIT_BACKEND == "redis":
        await close_redis()


app = FastAPI(
    title="Pixelift API",
    description="Credit-metered image and video processing API",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# Services, shared by all requests
app.state.limiter = limiter
app.state.image_limiter = build_rate_limiter(
    "image-processing", settings.IMAGE_RATE_LIMIT, settings.IMAGE_RATE_WINDOW
)
app.state.user_limiter = build_rate_limiter(
    "user-endpoint", settings.USER_ENDPOINT_RATE_LIMIT, settings.USER_ENDPOINT_RATE_WINDOW
)
app.state.api_key_limiter = build_rate_limiter(
    "api-key", settings.IMAGE_RATE_LIMIT, settings.API_KEY_RATE_WINDOW
)
app.state.inference = InferenceClient(
    api_key=settings.FAL_API_KEY,
    run_url=settings.FAL_RUN_URL,
    queue_url=settings.FAL_QUEUE_URL,
    timeout=settings.PROVIDER_TIMEOUT,
)
app.state.storage = LocalStorage(settings.UPLOAD_DIR)
app.state.notifications = NotificationDispatcher(EmailSender())
app.state.pipeline = ImagePipeline(
    inference=app.state.inference,
    storage=app.state.storage,
    notifications=app.state.notifications,
    processing_timeout=settings.PROCESSING_TIMEOUT,
)
app.state.video_service = VideoJobService(
    inference=app.state.inference,
    max_poll_attempts=settings.VIDEO_POLL_MAX_ATTEMPTS,
    poll_interval=settings.VIDEO_POLL_INTERVAL,
)

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PixeliftError)
async def pixelift_error_handler(request: Request, exc: PixeliftError):
    return exc.to_response()


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(images.router, prefix=settings.API_PREFIX, tags=["images"])
app.include_router(ai_video.router, prefix=settings.API_PREFIX, tags=["ai-video"])
app.include_router(processed_images.router, prefix=settings.API_PREFIX, tags=["processed-images"])
app.include_router(user.router, prefix=settings.API_PREFIX, tags=["user"])
app.include_router(api_keys.router, prefix=settings.API_PREFIX, tags=["api-keys"])
app.include_router(admin_webhooks.router, prefix=settings.API_PREFIX, tags=["admin"])


@app.get("/")
async def root():
    return {"message": "Pixelift API is running"}


@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy"}


@app.get("/health/db")
async def health_db():
    """
    Database health check: runs a trivial query.
    """
    try:
        from app.database import engine
        from sqlalchemy import text

        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1 as health_check"))
            row = result.fetchone()

            if row and row[0] == 1:
                return {
                    "status": "healthy",
                    "service": "database",
                    "message": "Database connection successful"
                }
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "service": "database",
                    "message": "Database query failed"
                }
            )
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "service": "database",
                "error": str(e)
            }
        )


@app.get("/health/provider")
async def health_provider():
    """
    Reports whether the inference provider is configured. No request is
    sent to the provider.
    """
    if not settings.FAL_API_KEY:
        return {
            "status": "not_configured",
            "service": "provider",
            "message": "Inference provider not configured (FAL_API_KEY not set)"
        }
    return {
        "status": "healthy",
        "service": "provider",
        "message": "Provider configured and ready"
    }
