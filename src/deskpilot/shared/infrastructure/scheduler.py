"""
Maintenance Scheduler
=====================

Wrapper around APScheduler for periodic housekeeping jobs such as
sweeping expired rate limit windows.
"""

from typing import Any, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from deskpilot.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class MaintenanceScheduler:
    """
    Manages the lifecycle of the background scheduler and its jobs.
    """

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    def add_interval_job(
        self,
        job_func: Callable[..., Any],
        seconds: int,
        job_id: str,
        name: Optional[str] = None
    ) -> None:
        """Register a job that runs every ``seconds``."""
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=seconds,
            id=job_id,
            name=name or job_id,
            misfire_grace_time=seconds,
            max_instances=1,
            replace_existing=True
        )
        logger.info(
            "Maintenance job registered",
            extra={"job_id": job_id, "interval_seconds": seconds}
        )

    async def start(self) -> None:
        """Start the scheduler (must run inside the event loop)."""
        if self._running:
            logger.warning("Maintenance scheduler already running")
            return

        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()

        self._scheduler.start()
        self._running = True
        logger.info("Maintenance scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Maintenance scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
