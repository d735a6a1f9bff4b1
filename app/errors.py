"""
Error types surfaced to API clients.

Every error renders as JSON with at least an ``error`` string. Routes either
raise these (handled by the exception handler in ``app.main``) or return
``exc.to_response()`` directly when background notifications must still run.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from fastapi import status
from fastapi.responses import JSONResponse


class PixeliftError(Exception):
    """Base class for errors with an HTTP status and a JSON body"""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def body(self) -> Dict[str, Any]:
        return {"error": self.message}

    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=self.body(),
            headers=self.headers(),
        )


class AuthError(PixeliftError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(PixeliftError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(PixeliftError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(PixeliftError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientCreditsError(PixeliftError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, required: int, available: int):
        super().__init__("Insufficient credits")
        self.required = required
        self.available = available

    @property
    def depleted(self) -> bool:
        return self.available == 0

    def body(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "required": self.required,
            "available": self.available,
        }


class RateLimitError(PixeliftError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(
        self,
        reset_at: datetime,
        message: str = "Too many requests. Please try again later.",
        limit: Optional[int] = None,
    ):
        super().__init__(message)
        self.reset_at = reset_at
        self.limit = limit

    def retry_after(self) -> int:
        seconds = (self.reset_at - datetime.now(timezone.utc)).total_seconds()
        return max(1, int(seconds + 0.999))

    def body(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "resetAt": self.reset_at.isoformat(),
        }

    def headers(self) -> Optional[Dict[str, str]]:
        headers = {"Retry-After": str(self.retry_after())}
        if self.limit is not None:
            headers.update({
                "X-RateLimit-Limit": str(self.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": self.reset_at.isoformat(),
            })
        return headers


class ProcessingError(PixeliftError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: str):
        super().__init__(message)
        self.details = details

    def body(self) -> Dict[str, Any]:
        return {"error": self.message, "details": self.details}
