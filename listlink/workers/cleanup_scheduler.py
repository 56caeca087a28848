"""Periodic runner for the expiry cleanup job."""

from __future__ import annotations

import asyncio
import logging

from listlink.core.config import get_settings
from listlink.core.logging import configure_logging
from listlink.dependencies.clients import build_cleanup_service, build_document_store
from listlink.services import CleanupService

logger = logging.getLogger(__name__)


class CleanupScheduler:
    """Run cleanup, then sleep for the configured interval, forever."""

    def __init__(self, service: CleanupService, interval_seconds: float) -> None:
        self._service = service
        self._interval = interval_seconds

    async def run_once(self) -> None:
        try:
            summary = await asyncio.to_thread(self._service.perform_cleanup)
        except Exception:
            logger.exception("Scheduled cleanup failed")
            return
        logger.info(
            "Scheduled cleanup completed",
            extra={
                "total_deleted": summary.total_deleted,
                "invites_expired": summary.invites_expired,
            },
        )

    async def run_forever(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    service = build_cleanup_service(build_document_store(settings.store), settings)
    scheduler = CleanupScheduler(
        service, interval_seconds=settings.maintenance.cleanup_interval_hours * 3600
    )
    await scheduler.run_forever()


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Cleanup scheduler stopped")
