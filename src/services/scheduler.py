# src/services/scheduler.py

"""Cron-driven trigger for the tracking job."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from croniter import croniter

from src.config.settings import Settings
from src.scrapers.product_page_scraper import utc_now
from src.services.tracking_job import TrackingJob, TrackingReport

logger = logging.getLogger("pricewatch.scheduler")


def next_run_after(expression: str, moment: datetime) -> datetime:
    """Next tick of a cron ``expression`` strictly after ``moment``."""
    result: datetime = croniter(expression, moment).get_next(datetime)
    return result


class TrackingScheduler:
    """Run the tracking job at start-up and then on every cron tick.

    The expression is evaluated against UTC.  A failing run is logged
    and the loop waits for the next tick.
    """

    def __init__(
        self,
        job: TrackingJob,
        expression: str | None = None,
        run_on_start: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.job = job
        self.expression = expression or Settings.TRACK_SCHEDULE
        if not croniter.is_valid(self.expression):
            msg = f"Invalid cron expression: {self.expression!r}"
            raise ValueError(msg)
        self.run_on_start = run_on_start
        self._clock = clock
        self._stopped = asyncio.Event()

    def stop(self) -> None:
        """Ask the loop to exit after the current wait or run."""
        self._stopped.set()

    async def run_once(self) -> TrackingReport | None:
        """Trigger one run; errors are logged, not raised."""
        try:
            return await self.job.run()
        except Exception as exc:
            logger.error("Scheduled tracking run failed: %s", exc, exc_info=True)
            return None

    async def _sleep_until(self, target: datetime) -> bool:
        """Wait until ``target``; returns False if stopped meanwhile."""
        delay = max((target - self._clock()).total_seconds(), 0.0)
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    async def serve(self, max_runs: int | None = None) -> int:
        """Loop until :meth:`stop` is called or ``max_runs`` is reached.

        Returns the number of runs triggered.
        """
        runs = 0
        if self.run_on_start:
            logger.info("Running tracker job at start-up")
            await self.run_once()
            runs += 1

        while not self._stopped.is_set():
            if max_runs is not None and runs >= max_runs:
                break
            target = next_run_after(self.expression, self._clock())
            logger.info("Next tracking run at %s", target.isoformat())
            if not await self._sleep_until(target):
                break
            await self.run_once()
            runs += 1

        logger.info("Tracking scheduler stopped after %d runs", runs)
        return runs
