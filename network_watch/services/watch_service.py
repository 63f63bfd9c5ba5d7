# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Periodic drift watch.

Re-acquires the network inventory on a fixed interval, compares every
acquisition against one baseline snapshot loaded at start, and forwards
the differences to the report service until stopped.
"""

import asyncio
import logging
import signal
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..models.difference import Difference
from ..models.enums import WatchState
from ..models.snapshot import ScanScope, Snapshot
from .diff_service import SnapshotComparator
from .inventory_service import InventoryService
from .report_service import ReportService
from .snapshot_store import SnapshotStoreError, load_snapshot

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30.0


class BaselineUnavailableError(Exception):
    """Raised when the baseline snapshot cannot be loaded at watch start."""

    def __init__(self, path: str | Path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to load baseline state: {reason}")


class WatchScheduler:
    """Runs acquisition and diff cycles against a fixed baseline.

    Cycles are driven by an APScheduler interval job. The first cycle runs
    immediately; later ticks fire every ``interval_seconds``. A tick that
    arrives while the previous cycle is still running is dropped, not
    queued. A failed acquisition is reported and the next tick still fires.

    Usage::

        scheduler = WatchScheduler(
            inventory=inventory,
            reporter=reporter,
            comparator=SnapshotComparator(),
            baseline_path="working_state.json",
            scope=ScanScope(region="us-east-1"),
            interval_seconds=30,
        )
        await scheduler.run()  # until SIGINT/SIGTERM or stop()
    """

    def __init__(
        self,
        inventory: InventoryService,
        reporter: ReportService,
        comparator: SnapshotComparator,
        baseline_path: str | Path,
        scope: ScanScope,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        verbose: bool = False,
    ):
        """Initialize the watch scheduler.

        Args:
            inventory: Acquires a Snapshot for a scope
            reporter: Receives difference listings and cycle failures
            comparator: Structural diff engine
            baseline_path: File holding the baseline snapshot
            scope: Region and optional VPC filter re-scanned every cycle
            interval_seconds: Seconds between ticks (must be positive)
            verbose: Forward per-collection counts with every report
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self._inventory = inventory
        self._reporter = reporter
        self._comparator = comparator
        self._baseline_path = Path(baseline_path)
        self._scope = scope
        self._interval = float(interval_seconds)
        self._verbose = verbose

        self._baseline: Optional[Snapshot] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._state = WatchState.IDLE
        self._run_count: int = 0
        self._failure_count: int = 0
        self._last_run: Optional[datetime] = None
        self._last_status: Optional[str] = None
        self._last_error: Optional[str] = None
        self._last_difference_count: Optional[int] = None

    def load_baseline(self) -> Snapshot:
        """Load the baseline snapshot from the configured file.

        Raises:
            BaselineUnavailableError: If the file is missing or malformed
        """
        logger.info(f"WatchScheduler: loading baseline state from {self._baseline_path}")
        try:
            baseline = load_snapshot(self._baseline_path)
        except SnapshotStoreError as e:
            logger.error(f"WatchScheduler: {e}")
            raise BaselineUnavailableError(self._baseline_path, str(e)) from e

        self._baseline = baseline
        logger.info(
            f"WatchScheduler: loaded baseline ({baseline.scope.describe()}, "
            f"scanned at {baseline.scan_time.isoformat()})"
        )
        return baseline

    async def run(
        self, stop_event: Optional[asyncio.Event] = None, handle_signals: bool = True
    ) -> None:
        """Run the watch loop until stopped.

        Args:
            stop_event: Event that ends the loop; an in-flight cycle still completes
            handle_signals: Install SIGINT/SIGTERM handlers that set the event

        Raises:
            BaselineUnavailableError: If the baseline cannot be loaded; no
                cycle runs and the state stays idle
        """
        baseline = self.load_baseline()

        self._stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        installed = self._install_signal_handlers(loop) if handle_signals else []

        scheduler = AsyncIOScheduler(event_loop=loop, timezone=timezone.utc)
        scheduler.add_job(
            self._on_tick,
            trigger=IntervalTrigger(seconds=self._interval, timezone=timezone.utc),
            args=[baseline],
            id="network_watch_scan",
            name="Network Drift Scan",
            next_run_time=datetime.now(timezone.utc),
            coalesce=True,
            max_instances=1,
            misfire_grace_time=None,
            replace_existing=True,
        )

        logger.info(f"WatchScheduler: starting periodic scan every {self._interval:g}s")
        scheduler.start()
        try:
            await self._stop_event.wait()
        finally:
            self._stop_event.set()
            scheduler.shutdown(wait=False)
            if self._in_flight is not None and not self._in_flight.done():
                logger.info("WatchScheduler: waiting for in-flight scan to finish")
                await asyncio.wait([self._in_flight])
            for sig in installed:
                loop.remove_signal_handler(sig)
            self._state = WatchState.STOPPED
            logger.info(
                f"WatchScheduler: stopped after {self._run_count} scan(s), "
                f"{self._failure_count} failure(s)"
            )

    def stop(self) -> None:
        """Request the loop to end; a scan in progress completes first."""
        if self._stop_event is not None:
            logger.info("WatchScheduler: stop requested")
            self._stop_event.set()

    async def run_now(self) -> Optional[list[Difference]]:
        """Run a single cycle immediately, loading the baseline if needed."""
        baseline = self._baseline or self.load_baseline()
        previous = self._state
        try:
            return await self._run_cycle(baseline)
        finally:
            self._state = previous

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[int]:
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not supported on this platform or outside the main thread
                logger.debug(f"WatchScheduler: cannot install handler for {sig!r}")
                continue
            installed.append(sig)
        return installed

    def _on_signal(self, sig: int) -> None:
        logger.info(f"WatchScheduler: received {signal.Signals(sig).name}, shutting down")
        if self._stop_event is not None:
            self._stop_event.set()

    async def _on_tick(self, baseline: Snapshot) -> None:
        """Scheduler job: start a cycle unless one is still running.

        The cycle runs as its own task so that scheduler shutdown, which
        cancels pending jobs, never interrupts a scan half way.
        """
        if self._stop_event is None or self._stop_event.is_set():
            return
        if self._in_flight is not None and not self._in_flight.done():
            logger.debug("WatchScheduler: previous scan still running, skipping tick")
            return

        self._in_flight = asyncio.ensure_future(self._scheduled_cycle(baseline))
        self._in_flight.add_done_callback(self._log_cycle_error)

    async def _scheduled_cycle(self, baseline: Snapshot) -> None:
        await self._run_cycle(baseline)
        if self._stop_event is not None and not self._stop_event.is_set():
            self._state = WatchState.WAITING

    @staticmethod
    def _log_cycle_error(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"WatchScheduler: scan cycle crashed: {error}", exc_info=error)

    async def _run_cycle(self, baseline: Snapshot) -> Optional[list[Difference]]:
        self._state = WatchState.SCANNING
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()

        try:
            current = await self._inventory.acquire(self._scope)
        except Exception as e:
            elapsed = time.monotonic() - start
            self._failure_count += 1
            self._last_run = started_at
            self._last_status = "error"
            self._last_error = str(e)
            logger.warning(f"WatchScheduler: scan failed after {elapsed:.1f}s: {e}")
            self._reporter.report_failure(e)
            return None

        elapsed = time.monotonic() - start
        differences = self._comparator.compare(baseline, current)

        self._run_count += 1
        self._last_run = started_at
        self._last_status = "success"
        self._last_error = None
        self._last_difference_count = len(differences)

        logger.info(
            f"WatchScheduler: scan complete "
            f"(differences={len(differences)}, elapsed={elapsed:.1f}s)"
        )
        self._reporter.report_differences(
            differences,
            elapsed,
            region=self._scope.region,
            counts=current.counts() if self._verbose else None,
            skipped=list(self._inventory.last_skipped),
        )
        return differences

    @property
    def state(self) -> WatchState:
        """Current state of the watch state machine."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Whether the loop is scanning or waiting for the next tick."""
        return self._state in (WatchState.SCANNING, WatchState.WAITING)

    @property
    def interval_seconds(self) -> float:
        """Seconds between ticks."""
        return self._interval

    @property
    def last_run(self) -> Optional[datetime]:
        """Start time of the last cycle."""
        return self._last_run

    @property
    def last_status(self) -> Optional[str]:
        """Status of the last cycle: 'success' or 'error'."""
        return self._last_status

    @property
    def last_error(self) -> Optional[str]:
        """Error message from the last failed cycle, if any."""
        return self._last_error

    @property
    def last_difference_count(self) -> Optional[int]:
        """Number of differences found by the last successful cycle."""
        return self._last_difference_count

    @property
    def run_count(self) -> int:
        """Number of successful cycles."""
        return self._run_count

    @property
    def failure_count(self) -> int:
        """Number of failed cycles."""
        return self._failure_count

    def get_status(self) -> dict:
        """Get scheduler status as a plain dictionary."""
        return {
            "state": self._state.value,
            "running": self.is_running,
            "interval_seconds": self._interval,
            "baseline_path": str(self._baseline_path),
            "scope": self._scope.describe(),
            "run_count": self._run_count,
            "failure_count": self._failure_count,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_status": self._last_status,
            "last_error": self._last_error,
            "last_difference_count": self._last_difference_count,
        }
