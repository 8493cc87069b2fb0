"""Reconciliation scheduler that tells views when to recompute."""

import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from orders.models import Invoice, WorkOrder, as_utc, utcnow

logger = logging.getLogger(__name__)


class RecomputeReason(str, Enum):
    """Why the views were asked to recompute."""

    EXTERNAL_EDIT = "external_edit"
    ARCHIVE_CHANGED = "archive_changed"
    PENDING_CHANGED = "pending_changed"
    LIFECYCLE_COMPLETED = "lifecycle_completed"
    SETTLE = "settle"


RecomputeListener = Callable[[int, RecomputeReason], None]


class ReconciliationScheduler:
    """
    Monotonic version counter with listeners and delayed bumps.

    Every bump increments ``version`` and notifies listeners. Delayed bumps
    absorb read-after-write lag in the store; their timer handles are owned
    here and cancelled by ``cancel_pending``.
    """

    def __init__(
        self,
        settle_delay: float = 0.5,
        archive_recency_window: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the scheduler.

        Args:
            settle_delay: Seconds to wait before the follow-up bump.
            archive_recency_window: Archives newer than this many seconds
                surface the archived view.
            clock: Source of the current UTC time.
        """
        self.settle_delay = settle_delay
        self.archive_recency_window = timedelta(seconds=archive_recency_window)
        self._clock = clock
        self._version = 0
        self._listeners: list[RecomputeListener] = []
        self._pending: set[asyncio.TimerHandle] = set()
        self._last_edited: Optional[datetime] = None
        self._archived_keys: frozenset[tuple[str, str]] = frozenset()

    @property
    def version(self) -> int:
        return self._version

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def subscribe(self, listener: RecomputeListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def bump(self, reason: RecomputeReason) -> int:
        """Advance the version and notify listeners."""
        self._version += 1
        logger.debug(f"Recompute #{self._version} ({reason.value})")

        for listener in list(self._listeners):
            try:
                listener(self._version, reason)
            except Exception as e:
                logger.error(f"Recompute listener failed on #{self._version}: {e}")

        return self._version

    def schedule_bump(
        self,
        reason: RecomputeReason = RecomputeReason.SETTLE,
        delay: Optional[float] = None,
    ) -> asyncio.TimerHandle:
        """
        Bump after ``delay`` seconds (the settle delay by default).

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        delay = self.settle_delay if delay is None else delay

        def fire() -> None:
            self._pending.discard(handle)
            self.bump(reason)

        handle = loop.call_later(delay, fire)
        self._pending.add(handle)
        return handle

    def settle(self, reason: RecomputeReason = RecomputeReason.LIFECYCLE_COMPLETED) -> int:
        """Bump now and again once the settle delay has passed."""
        version = self.bump(reason)
        self.schedule_bump(RecomputeReason.SETTLE)
        return version

    def cancel_pending(self) -> int:
        """Cancel all delayed bumps; returns how many were cancelled."""
        cancelled = len(self._pending)
        for handle in self._pending:
            handle.cancel()
        self._pending.clear()
        return cancelled

    def note_last_edited(self, last_edited: Optional[datetime]) -> bool:
        """Bump when the externally supplied edit timestamp changes."""
        if last_edited is None:
            return False
        last_edited = as_utc(last_edited)
        if last_edited == self._last_edited:
            return False
        self._last_edited = last_edited
        self.bump(RecomputeReason.EXTERNAL_EDIT)
        return True

    def note_archived(
        self,
        invoices: Iterable[Invoice],
        work_orders: Iterable[WorkOrder],
    ) -> bool:
        """
        Record the current archived sets.

        Bumps when the set of archived identifiers changed.

        Returns:
            True when the newest archive is recent enough that the archived
            view should be surfaced.
        """
        invoices = list(invoices)
        work_orders = list(work_orders)

        keys = frozenset(
            [("invoice", invoice.invoice_id) for invoice in invoices]
            + [("work_order", work_order.id) for work_order in work_orders]
        )
        if keys != self._archived_keys:
            self._archived_keys = keys
            self.bump(RecomputeReason.ARCHIVE_CHANGED)

        return self.should_surface_archived(invoices, work_orders)

    def should_surface_archived(
        self,
        invoices: Iterable[Invoice],
        work_orders: Iterable[WorkOrder],
    ) -> bool:
        latest = latest_archived_at([*invoices, *work_orders])
        if latest is None:
            return False
        return self._clock() - latest < self.archive_recency_window


def latest_archived_at(records: Iterable[Union[Invoice, WorkOrder]]) -> Optional[datetime]:
    """Newest ``archived_at`` across records, ignoring unset values."""
    stamps = [record.archived_at for record in records if record.archived_at is not None]
    return max(stamps) if stamps else None
