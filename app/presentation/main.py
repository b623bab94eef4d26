import os
import logging
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, APIRouter
import uvicorn
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.exceptions import (
    StickerPackError,
    general_exception_handler,
    sticker_pack_exception_handler,
)
from app.core.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
)
from app.infrastructure.adapters import JsonCacheStore, JsonUsageRecorder
from app.presentation.api.v1.routers import cache
from app.presentation.api.v1.routers import health
from app.presentation.api.v1.routers import packs
from app.presentation.api.v1.routers import stats
from utils.resource_manager import cleanup_old_temp_directories


def configure_logging() -> None:
    """Log to console and to a rotating file"""
    log_dir = os.path.dirname(settings.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    log_handlers = [
        logging.StreamHandler(),
        RotatingFileHandler(
            settings.log_file, maxBytes=5 * 1024 * 1024, backupCount=2, encoding="utf-8"
        ),
    ]
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format=settings.log_format,
        datefmt=settings.log_date_format,
        handlers=log_handlers,
    )


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the process-wide cache and usage store; tidy leftovers"""
    logger.info("Starting Sticker Pack Delivery API...")
    app.state.cache_store = JsonCacheStore()
    app.state.usage_recorder = JsonUsageRecorder()

    if settings.cache_sweep_on_startup:
        app.state.cache_store.sweep()
    removed = cleanup_old_temp_directories()
    if removed:
        logger.info("Removed %d stale working directories", removed)

    yield
    logger.info("Shutting down Sticker Pack Delivery API...")


def create_application() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        calls=settings.max_concurrent_requests,
        period=60,
    )

    app.add_exception_handler(StickerPackError, sticker_pack_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include API routers under versioned prefix
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(packs.router)
    api_v1.include_router(stats.router)
    api_v1.include_router(health.router)
    app.include_router(api_v1)
    # pull links point at /cache/<file>, outside the versioned API
    app.include_router(cache.router)

    return app


# Create application instance
app = create_application()

if __name__ == "__main__":
    dev_mode = os.getenv("DEV_MODE", "true").lower() == "true"
    uvicorn.run(
        "app.presentation.main:app",
        host=settings.host,
        port=settings.port,
        reload=dev_mode,
    )
