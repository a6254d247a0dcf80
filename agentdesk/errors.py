"""
Application errors rendered as `{"error": ..., "details": ...}` JSON bodies.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class BadRequestError(AppError):
    status_code = 400


class MissingFieldsError(BadRequestError):
    def __init__(self, message: str = "Missing required fields", details: Optional[str] = None):
        super().__init__(message, details=details)


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class UpstreamError(AppError):
    """An external API (OpenAI, GoHighLevel) rejected or failed a call."""
    status_code = 502
