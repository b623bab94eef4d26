"""
Custom exception handlers and error types
"""

from fastapi import Request
from fastapi.responses import JSONResponse
import logging
import traceback
from typing import Optional

logger = logging.getLogger(__name__)


class StickerPackError(Exception):
    """Base exception for sticker pack processing errors"""

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class NotFoundError(StickerPackError):
    """Sticker set, sticker file or archive does not exist. Never retried."""

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(message, "NOT_FOUND")
        self.resource = resource


class TransientError(StickerPackError):
    """Network, process or disk hiccup.

    Only the delivery push is retried on these; metadata lookups, sticker
    downloads and archive builds surface them to the caller as-is.
    """

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, "TRANSIENT")
        self.operation = operation


class OversizeError(StickerPackError):
    """Archive exceeds the platform delivery limit
    Args:
        message (str): Error message
        size (int): Archive size in bytes
        limit (int): Delivery limit in bytes
    Example:
        raise OversizeError("Archive too large", size=60 * 2**20, limit=50 * 2**20)
    """

    def __init__(self, message: str, size: int = 0, limit: int = 0):
        super().__init__(message, "OVERSIZE")
        self.size = size
        self.limit = limit

    @property
    def size_mb(self) -> float:
        return self.size / (1024 * 1024)


class PartialStateError(StickerPackError):
    """Working directory is missing expected files (e.g. nothing downloaded)"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, "PARTIAL_STATE")
        self.path = path


class ConfigurationError(StickerPackError):
    """Exception raised when configuration is invalid"""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message, "CONFIGURATION_ERROR")
        self.config_key = config_key


_STATUS_CODES = {
    "NOT_FOUND": 404,
    "OVERSIZE": 413,
    "TRANSIENT": 503,
    "PARTIAL_STATE": 500,
    "CONFIGURATION_ERROR": 500,
}


async def sticker_pack_exception_handler(request: Request, exc: StickerPackError):
    """Handle sticker pack errors"""
    status_code = _STATUS_CODES.get(exc.error_code or "", 500)
    if status_code >= 500:
        logger.error("Sticker pack error: %s", exc.message)
    else:
        logger.warning("Sticker pack error: %s", exc.message)
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": {
                "error": "Sticker pack request failed",
                "details": exc.message,
                "error_code": exc.error_code,
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors"""
    logger.error(f"Unexpected error: {type(exc).__name__}: {str(exc)}")
    logger.error(f"Traceback: {traceback.format_exc()}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": {
                "error": "Internal server error",
                "details": "An unexpected error occurred",
            }
        },
    )
