"""
Service-level exceptions.

Services raise subclasses of ServiceError; routers translate them into
HTTPException responses with a structured `{"error", "message"}` detail.
"""

from fastapi import HTTPException


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


def to_http_exception(e: ServiceError) -> HTTPException:
    """Convert a service error into an HTTPException."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )


__all__ = ["ServiceError", "to_http_exception"]
