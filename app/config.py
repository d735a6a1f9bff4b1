from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # Security
    SECRET_KEY: str = "change_this_later"
    JWT_ALGORITHM: str = "HS256"
    SESSION_COOKIE_NAME: str = "pixelift_session"
    SESSION_EXPIRES_MIN: int = 60 * 24 * 7
    ENVIRONMENT: str = "development"
    DEV_MODE: bool = False  # Accepts the bearer token "test" as dev@example.com

    # API
    API_PREFIX: str = "/api"
    APP_URL: str = "http://localhost:3000"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    # Redis (Celery and optional rate limiting backend)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Rate Limiting
    RATE_LIMIT_BACKEND: str = "memory"  # memory | redis
    RATE_LIMIT_PREFIX: str = "pixelift:"
    IMAGE_RATE_LIMIT: int = 10
    IMAGE_RATE_WINDOW: int = 60
    USER_ENDPOINT_RATE_LIMIT: int = 30
    USER_ENDPOINT_RATE_WINDOW: int = 60
    API_KEY_RATE_WINDOW: int = 60  # window for ApiKey.rate_limit
    USER_RATE_LIMIT: str = "60/minute"  # slowapi, per IP
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Inference provider (fal.ai)
    FAL_API_KEY: Optional[str] = None
    FAL_RUN_URL: str = "https://fal.run"
    FAL_QUEUE_URL: str = "https://queue.fal.run"
    PROVIDER_TIMEOUT: int = 60
    PROCESSING_TIMEOUT: int = 120

    # Video jobs
    VIDEO_POLL_INTERVAL: float = 5.0
    VIDEO_POLL_MAX_ATTEMPTS: int = 120  # 10 minutes at 5s
    VIDEO_SERVER_POLLING: bool = False

    # Uploads
    MAX_FILE_SIZE: int = 20 * 1024 * 1024
    UPLOAD_DIR: str = "uploads"

    # Email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Pixelift <support@pixelift.pl>"
    LOW_CREDITS_THRESHOLD: int = 3

    # Webhooks
    WEBHOOK_TIMEOUT: int = 10

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )


settings = Settings()
