"""Order board view-model: snapshot, selected tab and live partitions."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from lifecycle.engine import LifecycleEngine
from lifecycle.events import EventType, LifecycleEvent
from orders.models import Invoice, WorkOrder
from scheduler.reconcile import RecomputeReason
from views.projector import Partitions, Tab, partition

logger = logging.getLogger(__name__)


@dataclass
class OrderSnapshot:
    """Invoices and work orders as last read from the store."""

    invoices: list[Invoice] = field(default_factory=list)
    work_orders: list[WorkOrder] = field(default_factory=list)
    refunded_invoices: list[Invoice] = field(default_factory=list)
    archived_invoices: list[Invoice] = field(default_factory=list)
    archived_work_orders: list[WorkOrder] = field(default_factory=list)
    last_edited_at: Optional[datetime] = None

    @classmethod
    def from_records(
        cls,
        invoices: Iterable[Invoice],
        work_orders: Iterable[WorkOrder],
        last_edited_at: Optional[datetime] = None,
    ) -> "OrderSnapshot":
        """Split raw table contents into live, refunded and archived collections."""
        invoices = list(invoices)
        work_orders = list(work_orders)
        live_invoices = [invoice for invoice in invoices if not invoice.is_archived]

        if last_edited_at is None:
            edits = [i.last_edited_at for i in invoices if i.last_edited_at is not None]
            last_edited_at = max(edits) if edits else None

        return cls(
            invoices=live_invoices,
            work_orders=[wo for wo in work_orders if not wo.is_archived],
            refunded_invoices=[invoice for invoice in live_invoices if invoice.is_refunded],
            archived_invoices=[invoice for invoice in invoices if invoice.is_archived],
            archived_work_orders=[wo for wo in work_orders if wo.is_archived],
            last_edited_at=last_edited_at,
        )


BoardListener = Callable[[Partitions, Tab], None]


class OrderBoard:
    """
    Keeps the partitions current for one patient's transaction tabs.

    Recomputes whenever the reconciliation scheduler ticks, switches to the
    completed tab after a pickup, and to the archived tab when something was
    archived within the recency window.
    """

    def __init__(self, engine: LifecycleEngine, snapshot: Optional[OrderSnapshot] = None):
        self.engine = engine
        self.scheduler = engine.scheduler
        self.tab = Tab.ACTIVE
        self._snapshot = snapshot or OrderSnapshot()
        self._listeners: list[BoardListener] = []
        self._partitions = self._project()
        self._subscriptions = [
            self.scheduler.subscribe(self._on_recompute),
            engine.events.subscribe(self._on_picked_up, [EventType.ORDER_PICKED_UP]),
        ]

    @property
    def snapshot(self) -> OrderSnapshot:
        return self._snapshot

    @property
    def partitions(self) -> Partitions:
        return self._partitions

    def counts(self) -> dict[str, int]:
        return self._partitions.counts()

    def on_change(self, listener: BoardListener) -> Callable[[], None]:
        """Register a re-render callback; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def select(self, tab: Tab) -> None:
        self.tab = Tab(tab)
        self._notify()

    def load(self, snapshot: OrderSnapshot) -> Partitions:
        """Replace the snapshot with a fresh read from the store."""
        self._snapshot = snapshot
        version = self.scheduler.version

        self.engine.prune_pending(
            [*snapshot.invoices, *snapshot.archived_invoices],
            [*snapshot.work_orders, *snapshot.archived_work_orders],
        )
        self.scheduler.note_last_edited(snapshot.last_edited_at)
        surfaced = self.scheduler.note_archived(
            snapshot.archived_invoices, snapshot.archived_work_orders
        )
        if surfaced:
            self.tab = Tab.ARCHIVED

        if self.scheduler.version == version:
            self.refresh()
        elif surfaced:
            self._notify()
        return self._partitions

    def refresh(self) -> Partitions:
        self._partitions = self._project()
        self._notify()
        return self._partitions

    def close(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    def _project(self) -> Partitions:
        snapshot = self._snapshot
        return partition(
            snapshot.invoices,
            snapshot.work_orders,
            self.engine.pending_invoices,
            archived_invoices=snapshot.archived_invoices,
            archived_work_orders=snapshot.archived_work_orders,
            refunded_invoices=snapshot.refunded_invoices,
        )

    def _on_recompute(self, version: int, reason: RecomputeReason) -> None:
        logger.debug(f"Board recompute #{version} ({reason.value})")
        self.refresh()

    def _on_picked_up(self, event: LifecycleEvent) -> None:
        self.tab = Tab.COMPLETED
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._partitions, self.tab)
            except Exception as e:
                logger.error(f"Board listener failed: {e}")
