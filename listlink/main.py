"""
FastAPI application entrypoint for the list-linking service.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from listlink.api import alexa_router, callable_router, oauth_router
from listlink.clients import DocumentStoreError
from listlink.core.config import get_settings
from listlink.core.errors import ErrorCode, ServiceError
from listlink.core.logging import configure_logging
from listlink.dependencies import build_cleanup_service, get_document_store
from listlink.workers.cleanup_scheduler import CleanupScheduler

logger = logging.getLogger(__name__)


async def _handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=exc.to_payload())


async def _handle_store_error(request: Request, exc: DocumentStoreError) -> JSONResponse:
    logger.error("Document store failure", extra={"path": request.url.path, "error": str(exc)})
    error = ServiceError(ErrorCode.INTERNAL, "内部エラーが発生しました。")
    return JSONResponse(status_code=error.http_status, content=error.to_payload())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    task = None
    if settings.maintenance.scheduler_enabled:
        scheduler = CleanupScheduler(
            build_cleanup_service(get_document_store(), settings),
            interval_seconds=settings.maintenance.cleanup_interval_hours * 3600,
        )
        task = asyncio.create_task(scheduler.run_forever())
        logger.info("Cleanup scheduler started")
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="List Link Service",
        version="0.1.0",
        description="Voice-assistant account linking, device recovery and invites for shared lists.",
        lifespan=lifespan,
    )
    app.add_exception_handler(ServiceError, _handle_service_error)
    app.add_exception_handler(DocumentStoreError, _handle_store_error)
    app.include_router(oauth_router)
    app.include_router(alexa_router)
    app.include_router(callable_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
