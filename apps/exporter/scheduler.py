"""
Export Scheduler - Cron and On-Demand Execution

Manages scheduled and manual export job execution using APScheduler.

Features:
- Cron-based scheduling (configurable via EXPORT_SCHEDULE_CRON)
- RUN_ONCE mode (implied by ENV=local) for immediate execution
- Graceful shutdown handling

Usage:
    # Scheduled mode (default)
    python -m apps.exporter

    # Run once and exit
    RUN_ONCE=true python -m apps.exporter
"""

import asyncio
import logging
import signal
import sys
from typing import Any, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from apps.exporter.handler import OK_RESPONSE, handle
from utils.config import Settings, get_settings
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


class ExportScheduler:
    """
    Scheduler for periodic or on-demand export jobs.

    Handles:
    - APScheduler setup and management
    - Cron-based scheduling
    - RUN_ONCE immediate execution
    - Signal handling for graceful shutdown
    """

    def __init__(self, config: Settings, run_once: bool = False) -> None:
        """
        Initialize scheduler.

        Args:
            config: Application settings
            run_once: If True, run the export once and exit
        """
        self.config = config
        self.run_once = run_once
        self.scheduler: AsyncIOScheduler | None = None
        self.shutdown_event = asyncio.Event()
        self.last_response: Optional[dict[str, Any]] = None

        logger.info(
            "ExportScheduler initialized",
            extra={
                "run_once": run_once,
                "cron_schedule": config.EXPORT_SCHEDULE_CRON,
            },
        )

    async def execute_export(self) -> dict[str, Any]:
        """
        Execute one export run.

        Failures are already logged and mapped by the handler, so a failed
        run never stops the schedule.
        """
        logger.info("Starting export execution")

        try:
            self.last_response = await handle(settings=self.config)
            return self.last_response

        finally:
            if self.run_once:
                logger.info("RUN_ONCE mode: signaling shutdown")
                self.shutdown_event.set()

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def start(self) -> None:
        """
        Start scheduler or execute once.

        In scheduled mode, runs continuously until shutdown signal.
        In RUN_ONCE mode, executes immediately and exits.
        """
        self.setup_signal_handlers()

        if self.run_once:
            logger.info("Running in RUN_ONCE mode")
            await self.execute_export()
            return

        logger.info("Running in scheduled mode")

        self.scheduler = AsyncIOScheduler()

        trigger = CronTrigger.from_crontab(
            self.config.EXPORT_SCHEDULE_CRON, timezone=self.config.report_tz
        )
        self.scheduler.add_job(
            self.execute_export,
            trigger=trigger,
            id="export_job",
            name="Periodic External Contact Export",
            replace_existing=True,
            max_instances=1,
        )

        # Start scheduler first to get next_run_time
        self.scheduler.start()
        logger.info("Scheduler started")

        job = self.scheduler.get_job("export_job")
        next_run = getattr(job, "next_run_time", None)
        next_run_str = str(next_run) if next_run is not None else None

        logger.info(
            "Scheduled export job",
            extra={
                "schedule": self.config.EXPORT_SCHEDULE_CRON,
                "next_run": next_run_str,
            },
        )
        logger.info("Waiting for jobs...")

        await self.shutdown_event.wait()

        logger.info("Shutting down scheduler")
        if self.scheduler:
            self.scheduler.shutdown(wait=True)
        logger.info("Scheduler shutdown complete")


async def main() -> int:
    """
    Main entry point for scheduler.

    Returns:
        Process exit code, non-zero when a RUN_ONCE export failed
    """
    config = get_settings()
    setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)

    run_once = config.RUN_ONCE or config.is_local
    scheduler = ExportScheduler(config, run_once=run_once)

    try:
        await scheduler.start()
    except Exception as e:
        logger.error("Scheduler failed", extra={"error": str(e)}, exc_info=True)
        return 1

    if run_once and scheduler.last_response != OK_RESPONSE:
        return 1
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
