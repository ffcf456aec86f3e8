"""
Test suite for the refresh scheduler

Tests batch isolation, overlap skipping, pacing and the interruptible
background loop.
"""

import asyncio
from datetime import timedelta

import pytest

from climatesync.config import SchedulerConfig
from climatesync.scheduler import Scheduler, bound_locations

from conftest import START


def config(**overrides):
    values = {"cold_start_delay": 30.0, "inter_item_delay": 1.0, "interval_seconds": 1800.0}
    values.update(overrides)
    return SchedulerConfig(**values)


class RecordingJob:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    async def __call__(self, location):
        self.calls.append(location)
        if location in self.failing:
            raise RuntimeError(f"provider down for {location}")


class TestLocations:
    def test_defaults(self, fake_clock):
        scheduler = Scheduler(RecordingJob(), config=SchedulerConfig(), clock=fake_clock)
        assert scheduler.locations == ["Delhi", "Mumbai", "Chennai"]

    def test_dedup_and_bound(self):
        locations = [f"city-{i}" for i in range(15)] + ["city-0", ""]
        bounded = bound_locations(locations, 10)

        assert len(bounded) == 10
        assert bounded[0] == "city-0"
        assert len(set(bounded)) == 10


class TestRunOnce:
    """Test a single batch"""

    @pytest.mark.asyncio
    async def test_processes_all_with_pacing(self, fake_clock):
        job = RecordingJob()
        scheduler = Scheduler(job, ["Delhi", "Mumbai", "Chennai"], config(), clock=fake_clock)

        report = await scheduler.run_once()

        assert job.calls == ["Delhi", "Mumbai", "Chennai"]
        assert report.outcome == "success"
        assert fake_clock.sleeps == [1.0, 1.0]
        assert scheduler.last_run is report
        assert scheduler.runs_completed == 1

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, fake_clock):
        job = RecordingJob(failing=["Mumbai"])
        scheduler = Scheduler(job, ["Delhi", "Mumbai", "Chennai"], config(), clock=fake_clock)

        report = await scheduler.run_once()

        assert report.processed == ["Delhi", "Chennai"]
        assert report.failed == ["Mumbai"]
        assert "provider down" in report.errors["Mumbai"]
        assert report.outcome == "partial"

    @pytest.mark.asyncio
    async def test_all_failed(self, fake_clock):
        scheduler = Scheduler(RecordingJob(failing=["Delhi"]), ["Delhi"], config(), clock=fake_clock)
        report = await scheduler.run_once()
        assert report.outcome == "failed"

    @pytest.mark.asyncio
    async def test_overlapping_run_is_skipped(self, fake_clock):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_job(location):
            started.set()
            await release.wait()

        scheduler = Scheduler(slow_job, ["Delhi"], config(), clock=fake_clock)
        first = asyncio.create_task(scheduler.run_once())
        await started.wait()

        second = await scheduler.run_once()
        assert second.skipped
        assert second.outcome == "skipped"
        assert scheduler.batch_in_progress

        release.set()
        report = await first
        assert report.processed == ["Delhi"]
        assert not scheduler.batch_in_progress
        assert scheduler.runs_completed == 1

    @pytest.mark.asyncio
    async def test_status(self, fake_clock):
        scheduler = Scheduler(RecordingJob(), ["Delhi"], config(), clock=fake_clock)
        assert scheduler.status()["last_run"] is None

        await scheduler.run_once()

        status = scheduler.status()
        assert status["running"] is False
        assert status["runs_completed"] == 1
        assert status["last_run"]["outcome"] == "success"
        assert status["interval_seconds"] == 1800.0


class TestLoop:
    """Test the background loop and stopping"""

    @pytest.mark.asyncio
    async def test_cold_start_then_stop_mid_batch(self, fake_clock):
        calls = []

        async def job(location):
            calls.append(location)
            scheduler.request_stop()

        scheduler = Scheduler(job, ["Delhi", "Mumbai"], config(), clock=fake_clock)
        scheduler.start()
        await asyncio.wait_for(scheduler._task, timeout=1.0)

        assert fake_clock.sleeps[0] == 30.0
        assert calls == ["Delhi"]
        assert scheduler.last_run.stopped_early
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_stop_during_cold_start(self):
        job = RecordingJob()
        # Real clock: the cold start would take an hour without stop()
        scheduler = Scheduler(job, ["Delhi"], config(cold_start_delay=3600.0))
        scheduler.start()
        await asyncio.sleep(0)

        await asyncio.wait_for(scheduler.stop(), timeout=1.0)

        assert job.calls == []
        assert scheduler.runs_completed == 0

    @pytest.mark.asyncio
    async def test_runs_on_interval(self, fake_clock):
        job = RecordingJob()
        scheduler = Scheduler(job, ["Delhi"], config(cold_start_delay=0.0), clock=fake_clock)

        async def stop_after_three(location):
            await job(location)
            if len(job.calls) == 3:
                scheduler.request_stop()

        scheduler.job = stop_after_three
        scheduler.start()
        await asyncio.wait_for(scheduler._task, timeout=1.0)

        assert job.calls == ["Delhi"] * 3
        assert fake_clock.sleeps == [1800.0, 1800.0]

    @pytest.mark.asyncio
    async def test_interval_measured_from_batch_start(self, fake_clock):
        runs = []

        async def slow_job(location):
            fake_clock.advance(100.0)
            runs.append(location)
            if len(runs) == 4:
                scheduler.request_stop()

        scheduler = Scheduler(
            slow_job, ["Delhi", "Mumbai"], config(cold_start_delay=0.0), clock=fake_clock
        )
        scheduler.start()
        await asyncio.wait_for(scheduler._task, timeout=1.0)

        # Each batch spends 201s (two jobs and one pacing delay) of its 1800s slot
        assert fake_clock.sleeps == [1.0, 1599.0, 1.0]
        assert fake_clock.current == START + timedelta(seconds=1800 + 201)
