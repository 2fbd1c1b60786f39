"""Snapshot worker service for scheduled analytics rollups.

This background worker:
1. Wakes up every SNAPSHOT_POLL_INTERVAL_SECONDS
2. Works out the last closed day, ISO week and calendar month
3. Generates a platform-wide snapshot for each one that has none yet

Runs are serialized by the single loop, so at most one generation per
period is ever in flight from this worker.
"""

import asyncio
import contextlib
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import structlog
from dateutil.relativedelta import relativedelta

from gaming_analytics.core.config import settings
from gaming_analytics.db.session import get_store
from gaming_analytics.db.store import RecordStore, Window
from gaming_analytics.models import SnapshotSource, SnapshotType
from gaming_analytics.services.analytics.common import ensure_utc, utcnow
from gaming_analytics.services.analytics.snapshot import generate_snapshot, has_snapshot

logger = structlog.get_logger()

_TICK = timedelta(microseconds=1)


def closed_period(snapshot_type: str, now: datetime) -> Window:
    """Most recent fully elapsed period of ``snapshot_type`` before ``now``.

    Daily is yesterday, weekly the previous ISO week (Monday to Sunday),
    monthly the previous calendar month. Bounds are inclusive, so the end is
    one microsecond before the next period starts.
    """
    midnight = ensure_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)

    if snapshot_type == SnapshotType.DAILY.value:
        end = midnight
        start = end - timedelta(days=1)
    elif snapshot_type == SnapshotType.WEEKLY.value:
        end = midnight - timedelta(days=midnight.weekday())
        start = end - timedelta(days=7)
    elif snapshot_type == SnapshotType.MONTHLY.value:
        end = midnight.replace(day=1)
        start = end - relativedelta(months=1)
    else:
        raise ValueError(f"No schedule for snapshot type '{snapshot_type}'")

    return Window(start, end - _TICK)


class SnapshotWorker:
    """Background worker that keeps scheduled snapshots up to date."""

    def __init__(
        self,
        store: RecordStore | None = None,
        poll_interval: float | None = None,
        snapshot_types: list[str] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the snapshot worker.

        Args:
            store: Record store (defaults to one over the application engine)
            poll_interval: Seconds between checks (default: SNAPSHOT_POLL_INTERVAL_SECONDS)
            snapshot_types: Period types to keep current (default: SNAPSHOT_TYPES)
            clock: Source of "now", replaceable in tests
        """
        self.store = store or get_store()
        self.poll_interval = poll_interval or settings.SNAPSHOT_POLL_INTERVAL_SECONDS
        self.snapshot_types = snapshot_types or list(settings.SNAPSHOT_TYPES)
        self.clock = clock
        self.running = False
        self.logger = logger.bind(component="snapshot_worker")
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start the snapshot worker background task."""
        if self.running:
            self.logger.warning("Snapshot worker already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._run_loop())
        self.logger.info(
            "Snapshot worker started",
            poll_interval=self.poll_interval,
            snapshot_types=self.snapshot_types,
        )

    async def stop(self) -> None:
        """Stop the snapshot worker."""
        self.running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self.logger.info("Snapshot worker stopped")

    async def _run_loop(self) -> None:
        """Main worker loop; a failed tick is retried on the next one."""
        while self.running:
            try:
                await self.run_once()
            except Exception:
                self.logger.exception("Error in snapshot worker loop")

            await asyncio.sleep(self.poll_interval)

    async def run_once(self) -> list[dict[str, Any]]:
        """Generate every missing snapshot for the closed periods as of now.

        Returns:
            The snapshots generated on this tick
        """
        now = self.clock()
        generated = []

        for snapshot_type in self.snapshot_types:
            period = closed_period(snapshot_type, now)
            log = self.logger.bind(snapshot_type=snapshot_type, period_start=period.start.isoformat())

            if await has_snapshot(self.store, snapshot_type, period.start):
                log.debug("Snapshot already exists")
                continue

            try:
                snapshot = await generate_snapshot(
                    self.store,
                    snapshot_type=snapshot_type,
                    window=period,
                    generated_by=SnapshotSource.SCHEDULED.value,
                    now=now,
                )
            except Exception:
                log.exception("Scheduled snapshot failed, will retry next tick")
                continue

            log.info("Scheduled snapshot generated", snapshot_id=snapshot["id"])
            generated.append(snapshot)

        return generated


# Global worker instance
_snapshot_worker: SnapshotWorker | None = None


async def start_snapshot_worker() -> SnapshotWorker:
    """Start the global snapshot worker.

    Returns:
        Snapshot worker instance
    """
    global _snapshot_worker
    if _snapshot_worker is None:
        _snapshot_worker = SnapshotWorker()
        await _snapshot_worker.start()
    return _snapshot_worker


async def stop_snapshot_worker() -> None:
    """Stop the global snapshot worker."""
    global _snapshot_worker
    if _snapshot_worker:
        await _snapshot_worker.stop()
        _snapshot_worker = None


def get_snapshot_worker() -> SnapshotWorker | None:
    """Get the global snapshot worker instance.

    Returns:
        Snapshot worker or None if not started
    """
    return _snapshot_worker
