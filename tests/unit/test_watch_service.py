"""Unit tests for the periodic watch scheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from network_watch.clients.aws_client import AWSAPIError
from network_watch.models import VPC, DifferenceKind, WatchState
from network_watch.services.diff_service import SnapshotComparator
from network_watch.services.snapshot_store import save_snapshot
from network_watch.services.watch_service import BaselineUnavailableError, WatchScheduler


@pytest.fixture
def baseline_path(tmp_path, sample_snapshot):
    return save_snapshot(sample_snapshot, tmp_path / "working_state.json")


@pytest.fixture
def reporter():
    return MagicMock()


@pytest.fixture
def inventory():
    inventory = MagicMock()
    inventory.acquire = AsyncMock()
    inventory.last_skipped = []
    return inventory


def _scheduler(inventory, reporter, baseline_path, scope, **kwargs) -> WatchScheduler:
    return WatchScheduler(
        inventory=inventory,
        reporter=reporter,
        comparator=SnapshotComparator(),
        baseline_path=baseline_path,
        scope=scope,
        interval_seconds=kwargs.pop("interval_seconds", 0.01),
        **kwargs,
    )


def _stop_after(calls: int, stop_event: asyncio.Event, results: list):
    """Build an acquire side effect that sets the stop event on the given call."""
    remaining = list(results)
    count = 0

    async def acquire(scope):
        nonlocal count
        count += 1
        if count >= calls:
            stop_event.set()
        result = remaining.pop(0) if remaining else results[-1]
        if isinstance(result, Exception):
            raise result
        return result

    return acquire


# =============================================================================
# Baseline loading
# =============================================================================

class TestBaseline:
    """The baseline must load before any cycle runs."""

    async def test_missing_baseline_prevents_start(self, inventory, reporter, tmp_path, scope):
        scheduler = _scheduler(inventory, reporter, tmp_path / "missing.json", scope)

        with pytest.raises(BaselineUnavailableError) as exc_info:
            await scheduler.run(handle_signals=False)

        assert "does not exist" in str(exc_info.value)
        assert scheduler.state == WatchState.IDLE
        inventory.acquire.assert_not_called()
        reporter.report_differences.assert_not_called()

    async def test_malformed_baseline_prevents_start(self, inventory, reporter, tmp_path, scope):
        path = tmp_path / "broken.json"
        path.write_text("[]", encoding="utf-8")
        scheduler = _scheduler(inventory, reporter, path, scope)

        with pytest.raises(BaselineUnavailableError):
            await scheduler.run(handle_signals=False)

        assert scheduler.state == WatchState.IDLE
        inventory.acquire.assert_not_called()

    async def test_baseline_path_below_a_file_prevents_start(
        self, inventory, reporter, tmp_path, scope
    ):
        parent = tmp_path / "afile"
        parent.write_text("not a directory", encoding="utf-8")
        scheduler = _scheduler(inventory, reporter, parent / "working_state.json", scope)

        with pytest.raises(BaselineUnavailableError):
            await scheduler.run(handle_signals=False)

        assert scheduler.state == WatchState.IDLE
        inventory.acquire.assert_not_called()

    def test_interval_must_be_positive(self, inventory, reporter, baseline_path, scope):
        with pytest.raises(ValueError):
            _scheduler(inventory, reporter, baseline_path, scope, interval_seconds=0)


# =============================================================================
# Cycles
# =============================================================================

class TestCycles:
    """Tests for acquisition and diff cycles."""

    async def test_initial_cycle_runs_before_first_tick(
        self, inventory, reporter, baseline_path, scope, sample_snapshot
    ):
        stop_event = asyncio.Event()
        inventory.acquire.side_effect = _stop_after(1, stop_event, [sample_snapshot])
        scheduler = _scheduler(
            inventory, reporter, baseline_path, scope, interval_seconds=60
        )

        await asyncio.wait_for(scheduler.run(stop_event, handle_signals=False), timeout=5)

        inventory.acquire.assert_awaited_once_with(scope)
        reporter.report_differences.assert_called_once()
        differences = reporter.report_differences.call_args.args[0]
        assert differences == []
        assert scheduler.state == WatchState.STOPPED
        assert scheduler.run_count == 1

    async def test_drift_is_reported(
        self, inventory, reporter, baseline_path, scope, sample_snapshot
    ):
        drifted = sample_snapshot.model_copy(
            update={"vpcs": sample_snapshot.vpcs + (VPC(id="vpc-67890"),)}
        )
        stop_event = asyncio.Event()
        inventory.acquire.side_effect = _stop_after(2, stop_event, [sample_snapshot, drifted])
        scheduler = _scheduler(inventory, reporter, baseline_path, scope)

        await asyncio.wait_for(scheduler.run(stop_event, handle_signals=False), timeout=5)

        assert inventory.acquire.await_count == 2
        last = reporter.report_differences.call_args_list[-1].args[0]
        assert [(d.kind, d.resource_id) for d in last] == [(DifferenceKind.ADDED, "vpc-67890")]
        assert scheduler.last_difference_count == 1

    async def test_failed_tick_does_not_stop_the_loop(
        self, inventory, reporter, baseline_path, scope, sample_snapshot
    ):
        failure = AWSAPIError("AWS API error: UnauthorizedOperation", "UnauthorizedOperation")
        stop_event = asyncio.Event()
        inventory.acquire.side_effect = _stop_after(
            3, stop_event, [sample_snapshot, failure, sample_snapshot]
        )
        scheduler = _scheduler(inventory, reporter, baseline_path, scope)

        await asyncio.wait_for(scheduler.run(stop_event, handle_signals=False), timeout=5)

        assert inventory.acquire.await_count == 3
        reporter.report_failure.assert_called_once_with(failure)
        assert reporter.report_differences.call_count == 2
        assert reporter.report_differences.call_args.args[0] == []
        assert scheduler.run_count == 2
        assert scheduler.failure_count == 1
        assert scheduler.last_status == "success"
        assert scheduler.last_error is None

    async def test_verbose_forwards_counts(
        self, inventory, reporter, baseline_path, scope, sample_snapshot
    ):
        stop_event = asyncio.Event()
        inventory.acquire.side_effect = _stop_after(1, stop_event, [sample_snapshot])
        scheduler = _scheduler(inventory, reporter, baseline_path, scope, verbose=True)

        await asyncio.wait_for(scheduler.run(stop_event, handle_signals=False), timeout=5)

        kwargs = reporter.report_differences.call_args.kwargs
        assert kwargs["counts"] == sample_snapshot.counts()
        assert kwargs["region"] == "us-east-1"

    async def test_skipped_resources_are_forwarded(
        self, inventory, reporter, baseline_path, scope, sample_snapshot
    ):
        stop_event = asyncio.Event()
        inventory.acquire.side_effect = _stop_after(1, stop_event, [sample_snapshot])
        inventory.last_skipped = ["IAMRole AROA2 (locked)"]
        scheduler = _scheduler(inventory, reporter, baseline_path, scope)

        await asyncio.wait_for(scheduler.run(stop_event, handle_signals=False), timeout=5)

        kwargs = reporter.report_differences.call_args.kwargs
        assert kwargs["skipped"] == ["IAMRole AROA2 (locked)"]

    async def test_slow_scan_never_overlaps_the_next_tick(
        self, inventory, reporter, baseline_path, scope, sample_snapshot
    ):
        stop_event = asyncio.Event()
        active = 0
        peak = 0
        calls = 0

        async def slow_acquire(scope):
            nonlocal active, peak, calls
            active += 1
            calls += 1
            peak = max(peak, active)
            await asyncio.sleep(0.05)
            active -= 1
            if calls >= 3:
                stop_event.set()
            return sample_snapshot

        inventory.acquire.side_effect = slow_acquire
        scheduler = _scheduler(inventory, reporter, baseline_path, scope, interval_seconds=0.01)

        await asyncio.wait_for(scheduler.run(stop_event, handle_signals=False), timeout=5)

        assert peak == 1
        assert calls == 3
        assert scheduler.run_count == 3

    async def test_run_now_records_failure(self, inventory, reporter, baseline_path, scope):
        inventory.acquire.side_effect = AWSAPIError("throttled", "Throttling")
        scheduler = _scheduler(inventory, reporter, baseline_path, scope)

        result = await scheduler.run_now()

        assert result is None
        assert scheduler.last_status == "error"
        assert scheduler.last_error == "throttled"
        status = scheduler.get_status()
        assert status["failure_count"] == 1
        assert status["state"] == "idle"


# =============================================================================
# Termination
# =============================================================================

class TestTermination:
    """Tests for stopping the loop."""

    async def test_stop_ends_the_loop_while_waiting(
        self, inventory, reporter, baseline_path, scope, sample_snapshot
    ):
        inventory.acquire.return_value = sample_snapshot
        scheduler = _scheduler(inventory, reporter, baseline_path, scope, interval_seconds=60)

        task = asyncio.create_task(scheduler.run(handle_signals=False))
        while scheduler.state != WatchState.WAITING:
            await asyncio.sleep(0.01)
        assert scheduler.is_running

        scheduler.stop()
        await asyncio.wait_for(task, timeout=5)

        assert scheduler.state == WatchState.STOPPED
        assert not scheduler.is_running
        assert inventory.acquire.await_count == 1

    async def test_cancellation_lets_in_flight_cycle_finish(
        self, inventory, reporter, baseline_path, scope, sample_snapshot
    ):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_acquire(scope):
            started.set()
            await release.wait()
            return sample_snapshot

        inventory.acquire.side_effect = slow_acquire
        scheduler = _scheduler(inventory, reporter, baseline_path, scope)

        task = asyncio.create_task(scheduler.run(handle_signals=False))
        await started.wait()
        task.cancel()
        await asyncio.sleep(0)
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task

        reporter.report_differences.assert_called_once()
        assert scheduler.run_count == 1
        assert scheduler.state == WatchState.STOPPED
