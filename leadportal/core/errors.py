"""Application error taxonomy.

Services raise these; ``leadportal.main`` maps them to ``{"message": ...}``
responses with the matching status code.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class InvalidCredentials(AppError):
    # Same status as Unauthorized; the message never names the failing factor
    status_code = 401
    default_message = "Invalid credentials"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Invalid or expired token"


class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden: Insufficient permissions"


class NotFound(AppError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Conflict"


class StorageError(AppError):
    status_code = 500
    default_message = "Storage operation failed"
