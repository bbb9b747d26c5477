#!/usr/bin/env python3
"""
Headless runner for the live-score sync.

Runs the sync scheduler without the HTTP API. Meant to be run under
systemd, supervisor or a container restart policy: when the database
becomes unreachable the scheduler stops and this process exits with
status 1 so the supervisor can restart it.

Usage:
    python run_scheduler.py                    # Poll until interrupted
    python run_scheduler.py --once             # Run a single cycle and exit
    python run_scheduler.py --interval-ms 2000 # Override POLL_INTERVAL_MS
"""
import argparse
import asyncio
import json
import signal
import sys
from typing import Optional

from app.core.config import settings
from app.core.database import SessionLocal, init_db
from app.core.exceptions import StorageUnavailableError
from app.core.logging import configure_logging, get_logger
from app.core.scheduler import SyncScheduler

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


class SchedulerRunner:
    """Runner for the sync scheduler."""

    def __init__(self, interval_ms: Optional[int] = None):
        self.scheduler = SyncScheduler(interval_ms=interval_ms)
        self.shutdown = False

    async def start(self) -> int:
        """Start the scheduler and run until shutdown. Returns the exit code."""
        logger.info("Starting scheduler runner...")
        await self.scheduler.start()
        logger.info("Press Ctrl+C to stop")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        while not self.shutdown and self.scheduler.running:
            await asyncio.sleep(0.5)

        if self.shutdown:
            await self.scheduler.stop()
            logger.info("Scheduler runner stopped")
            return 0

        logger.critical(f"Scheduler halted: {self.scheduler.last_error}")
        return 1

    def _set_shutdown(self):
        logger.info("Shutdown signal received")
        self.shutdown = True


async def run_once() -> int:
    """Run one cycle and print its report."""
    scheduler = SyncScheduler(session_factory=SessionLocal)
    try:
        report = await scheduler.trigger_now()
    except StorageUnavailableError:
        return 1
    print(json.dumps(report.to_dict(), indent=2))
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run the live-score sync scheduler")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync cycle, print the report and exit"
    )
    parser.add_argument(
        "--interval-ms",
        type=int,
        metavar="MS",
        help=f"Polling interval in milliseconds (default {settings.POLL_INTERVAL_MS})"
    )
    args = parser.parse_args()

    init_db()

    if args.once:
        return asyncio.run(run_once())

    runner = SchedulerRunner(interval_ms=args.interval_ms)
    try:
        return asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
