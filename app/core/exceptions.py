"""
Global exception handling for the application.
Every failure of the upload pipeline is an AppError carrying the message text
returned to the client.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class UploadError(AppError):
    """A file of an upload batch could not be imported."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR, details)


class MalformedInputError(UploadError):
    """The CSV stream reported a structural parse error."""


class EmptyHeaderError(UploadError):
    """The CSV has no header record."""
    def __init__(self, message: str = "No header row found in CSV", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class DuplicateColumnError(UploadError):
    """Two header cells sanitize to the same column name."""


class InvalidIdentifierError(UploadError):
    """A table or column name is not safe to place in SQL text."""


class SchemaCreationError(UploadError):
    """DROP or CREATE TABLE failed."""


class EmptyDatasetError(UploadError):
    """The CSV has a header but no data rows."""
    def __init__(self, message: str = "No data found in CSV", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class RowInsertError(UploadError):
    """An insert failed and the file's transaction was rolled back."""


class UploadTimeoutError(UploadError):
    """The per-file deadline elapsed while loading rows."""


class UploadIOError(UploadError):
    """A filesystem operation on an upload file failed."""


def store_error_message(exc: Exception) -> str:
    """Message of the driver error behind a SQLAlchemy exception."""
    return str(getattr(exc, "orig", None) or exc)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all uncaught exceptions globally."""

    if isinstance(exc, AppError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
        )

    logger.exception("Unexpected error occurred", path=request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "An unexpected error occurred. Please try again later."},
    )
