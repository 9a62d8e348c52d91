#!/usr/bin/env python3
"""
Background runner for the pick settlement scheduler.

This script runs the automation scheduler as a standalone background service.
It can be run via systemd, supervisor, or directly.

Usage:
    python run_scheduler.py              # Run in foreground
    python run_scheduler.py --once       # Run one resolver sweep and exit
"""
import asyncio
import argparse
import signal
import sys
import logging

from app.core.config import settings
from app.core.database import init_db
from app.core.logging import configure_logging
from app.core.metrics import start_metrics_server
from app.core.scheduler import AutomationScheduler, run_resolver_sweep
from app.services.aggregator_service import get_aggregator

logger = logging.getLogger(__name__)


class SchedulerRunner:
    """Runner for the automation scheduler."""

    def __init__(self):
        self.scheduler: AutomationScheduler = None
        self.shutdown = asyncio.Event()

    async def start(self):
        """Start the scheduler and run until shutdown."""
        logger.info("Starting scheduler runner...")

        self.scheduler = AutomationScheduler()
        await self.scheduler.start()

        logger.info("Scheduler is now running. Press Ctrl+C to stop")

        # Setup signal handlers for graceful shutdown
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        await self.shutdown.wait()

        await self.scheduler.stop()
        await close_providers()
        logger.info("Scheduler runner stopped")

    def _set_shutdown(self):
        """Set shutdown flag."""
        logger.info("Shutdown signal received")
        self.shutdown.set()


async def close_providers():
    """Close the HTTP clients of the shared provider services."""
    aggregator = get_aggregator()
    for provider in (aggregator.espn, aggregator.odds, aggregator.players):
        await provider.close()


async def run_once() -> int:
    """Run a single resolver sweep."""
    init_db()
    try:
        return await run_resolver_sweep()
    finally:
        await close_providers()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Run the pick settlement scheduler'
    )

    parser.add_argument(
        '--once',
        action='store_true',
        help='Run one resolver sweep and exit'
    )

    args = parser.parse_args()

    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    if args.once:
        settled = asyncio.run(run_once())
        print(f"Settled {settled} pick(s)")
        return 0

    start_metrics_server(settings.METRICS_PORT)
    runner = SchedulerRunner()

    try:
        asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
        return 0
    except Exception as e:
        logger.error(f"Scheduler error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
