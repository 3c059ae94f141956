"""Application error taxonomy.

Every error carries the HTTP status it maps to and a human readable message.
Handlers in ``main`` turn them into the standard error envelope.
"""
from typing import Any, List, Optional


class AppError(Exception):
    """Base class for errors reported to API callers."""

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Any]] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(AppError):
    """Missing or blank required input."""
    status_code = 400
    default_message = "Invalid input"


class ConflictError(AppError):
    """A unique field is already taken."""
    status_code = 409
    default_message = "Resource already exists"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class AuthError(AppError):
    """Bad credentials or an invalid, replayed or expired token."""
    status_code = 401
    default_message = "Unauthorized request"


class UploadError(AppError):
    """The media host rejected or failed an upload."""
    status_code = 400
    default_message = "Error while uploading file"


class InternalError(AppError):
    status_code = 500
    default_message = "Something went wrong"
