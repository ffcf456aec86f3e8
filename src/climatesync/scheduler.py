"""
Periodic refresh scheduler

Runs a per-location job over a bounded location list on a fixed interval.
A batch never overlaps another batch, one failing location never aborts the
rest, and every wait can be interrupted by stop().
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from .clock import Clock, SystemClock
from .config import DEFAULT_LOCATIONS, SchedulerConfig
from .observability import get_metrics, trace_async

logger = logging.getLogger(__name__)

LocationJob = Callable[[str], Awaitable[Any]]


@dataclass
class RunReport:
    """Outcome of one batch"""

    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    processed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    skipped: bool = False
    stopped_early: bool = False

    @property
    def outcome(self) -> str:
        if self.skipped:
            return "skipped"
        if self.failed and not self.processed:
            return "failed"
        if self.failed:
            return "partial"
        return "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "processed": list(self.processed),
            "failed": list(self.failed),
            "errors": dict(self.errors),
            "skipped": self.skipped,
            "stopped_early": self.stopped_early,
            "outcome": self.outcome,
        }


def bound_locations(locations: Iterable[str], limit: int) -> list[str]:
    """Deduplicate preserving order and cap the list at ``limit``"""
    unique = list(dict.fromkeys(location for location in locations if location))
    if len(unique) > limit:
        logger.warning(
            f"{len(unique)} locations configured, only the first {limit} will be refreshed"
        )
    return unique[:limit]


class Scheduler:
    """Interval loop over a bounded set of locations"""

    def __init__(
        self,
        job: LocationJob,
        locations: Optional[Iterable[str]] = None,
        config: Optional[SchedulerConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.job = job
        self.config = config or SchedulerConfig()
        self.clock = clock or SystemClock()

        if locations is None:
            locations = self.config.locations or DEFAULT_LOCATIONS
        self.locations = bound_locations(locations, self.config.max_locations)

        self.last_run: Optional[RunReport] = None
        self.runs_completed = 0
        self._batch_in_progress = False
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def batch_in_progress(self) -> bool:
        return self._batch_in_progress

    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def _wait(self, seconds: float) -> bool:
        """
        Sleep on the clock unless stop is requested first

        Returns:
            True if stop was requested
        """
        if self._stop_requested():
            return True
        if seconds <= 0:
            return False
        if self._stop_event is None:
            await self.clock.sleep(seconds)
            return False

        sleeper = asyncio.create_task(self.clock.sleep(seconds))
        stopper = asyncio.create_task(self._stop_event.wait())
        done, pending = await asyncio.wait(
            {sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        return self._stop_requested()

    @trace_async("scheduler.run_once")
    async def run_once(self) -> RunReport:
        """
        Refresh every location once

        An overlapping call returns immediately with ``skipped=True``.
        """
        report = RunReport(run_id=uuid4().hex[:12], started_at=self.clock.now())

        # No await between check and set, so concurrent callers see the flag
        if self._batch_in_progress:
            logger.info("Refresh already in progress, skipping this run")
            report.skipped = True
            report.finished_at = self.clock.now()
            return report
        self._batch_in_progress = True

        try:
            logger.info(f"Refresh {report.run_id} started for {len(self.locations)} locations")
            for index, location in enumerate(self.locations):
                if index > 0 and await self._wait(self.config.inter_item_delay):
                    report.stopped_early = True
                    break
                if self._stop_requested():
                    report.stopped_early = True
                    break

                try:
                    await self.job(location)
                    report.processed.append(location)
                except Exception as e:
                    report.failed.append(location)
                    report.errors[location] = f"{type(e).__name__}: {e}"
                    logger.error(f"Refresh of {location} failed: {e}")
        finally:
            self._batch_in_progress = False
            report.finished_at = self.clock.now()

        self.last_run = report
        self.runs_completed += 1

        metrics = get_metrics()
        if metrics:
            metrics.record_scheduler_run(report.outcome, len(report.failed))

        logger.info(
            f"Refresh {report.run_id} finished: {len(report.processed)} processed, "
            f"{len(report.failed)} failed"
        )
        return report

    async def _loop(self) -> None:
        if await self._wait(self.config.cold_start_delay):
            return
        while not self._stop_requested():
            tick = self.clock.now()
            await self.run_once()
            # Ticks are spaced from batch start, so a slow batch shortens the wait
            elapsed = (self.clock.now() - tick).total_seconds()
            if await self._wait(max(self.config.interval_seconds - elapsed, 0.0)):
                break
        logger.info("Scheduler loop exited")

    def start(self) -> None:
        """Start the background loop on the running event loop"""
        if self.is_running:
            logger.warning("Scheduler already running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info(
            f"Scheduler started: cold start {self.config.cold_start_delay}s, "
            f"interval {self.config.interval_seconds}s, locations {self.locations}"
        )

    def request_stop(self) -> None:
        """Ask the loop and any running batch to stop at the next checkpoint"""
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        self._stop_event.set()

    async def stop(self) -> None:
        """Stop the loop and wait for the current location to finish"""
        self.request_stop()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Scheduler stopped")

    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "batch_in_progress": self.batch_in_progress,
            "locations": list(self.locations),
            "interval_seconds": self.config.interval_seconds,
            "runs_completed": self.runs_completed,
            "last_run": self.last_run.to_dict() if self.last_run else None,
        }
