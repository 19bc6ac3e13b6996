"""Error taxonomy shared by the store, the extraction pipeline and the routes.

Every error carries the HTTP status the API layer answers with, so route
handlers can simply let them propagate.
"""

from typing import Any


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, errors: Any = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class ExtractionError(AppError):
    status_code = 400


class StorageError(AppError):
    """I/O failure in the content store. The message is safe to show to clients."""

    status_code = 500
