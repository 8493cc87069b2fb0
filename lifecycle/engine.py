"""
Lifecycle engine for invoice/work order pickup and archive.

Each operation updates the record the user acted on, then mirrors the same
status fields onto the paired record. The pair is kept eventually
consistent: the store offers no cross-table transactions, so a failed
mirror write is logged and reported but does not fail the operation.

Operations return an asyncio.Task. The optimistic part (buffering a pickup
so views show it at once) happens before the task is returned; the store
writes run inside the task and settle later.
"""

import asyncio
import logging
from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from lifecycle.config import Settings, get_settings
from lifecycle.errors import ArchiveError, EntitySide, PersistenceError
from lifecycle.events import EventBus, EventType
from lifecycle.references import resolve_archive_target, resolve_order_ref
from lifecycle.results import LifecycleResult, WriteOutcome
from lifecycle.store import OrderStore
from orders.models import Invoice, OrderRef, WorkOrder, utcnow
from orders.status import archive_patch, pickup_patch
from scheduler.reconcile import RecomputeReason, ReconciliationScheduler

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_REASON = "Archived by user"


class PendingPickups:
    """Ids shown as picked up before the store confirms it, in insertion order."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], None] = {}

    def add(self, entity_id: str, side: str = EntitySide.INVOICE) -> None:
        self._entries[(side, entity_id)] = None

    def discard(self, entity_id: str, side: str = EntitySide.INVOICE) -> None:
        self._entries.pop((side, entity_id), None)

    def ids(self, side: Optional[str] = None) -> frozenset[str]:
        """Buffered ids, optionally only those picked up from one side."""
        return frozenset(
            entity_id for entry_side, entity_id in self._entries if side in (None, entry_side)
        )

    def snapshot(self) -> frozenset[str]:
        return self.ids()

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self.ids()

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


class LifecycleEngine:
    """
    Applies pickup and archive transitions across an invoice and its work order.

    Callers must not start a second operation on the same id before the first
    task completes; overlapping writes race and the store keeps the last one.
    """

    def __init__(
        self,
        store: OrderStore,
        scheduler: Optional[ReconciliationScheduler] = None,
        events: Optional[EventBus] = None,
        archive_reason: str = DEFAULT_ARCHIVE_REASON,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the engine.

        Args:
            store: Persistence adapter for both tables.
            scheduler: Recompute signal for views. A default one is created
                if not provided.
            events: Notification channel for settled operations.
            archive_reason: Reason written when archiving without one.
            clock: Source of pickup/archive timestamps.
        """
        self.store = store
        self.scheduler = scheduler or ReconciliationScheduler()
        self.events = events or EventBus()
        self.archive_reason = archive_reason
        self._clock = clock
        self._pending = PendingPickups()
        self._in_flight: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        store: OrderStore,
        settings: Optional[Settings] = None,
        events: Optional[EventBus] = None,
    ) -> "LifecycleEngine":
        settings = settings or get_settings()
        scheduler = ReconciliationScheduler(
            settle_delay=settings.settle_delay_seconds,
            archive_recency_window=settings.archive_recency_window_seconds,
        )
        return cls(
            store,
            scheduler=scheduler,
            events=events,
            archive_reason=settings.archive_reason,
        )

    @property
    def pending(self) -> frozenset[str]:
        """Read-only view of the optimistic pickup buffer."""
        return self._pending.snapshot()

    @property
    def pending_invoices(self) -> frozenset[str]:
        """Buffered invoice ids, the set the projector moves to completed."""
        return self._pending.ids(EntitySide.INVOICE)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    # Pickup

    def mark_picked_up(
        self, entity_id: str, is_invoice_side: bool = True
    ) -> "asyncio.Task[LifecycleResult]":
        """
        Mark an invoice or work order as collected.

        The id joins the pending buffer immediately. The returned task
        resolves to a LifecycleResult; if the primary write fails the id is
        removed from the buffer again.

        Raises:
            ValueError: If ``entity_id`` is empty.
        """
        if not entity_id or not entity_id.strip():
            raise ValueError("An invoice or work order id is required")

        # The task cannot start before this call returns
        task = self._spawn(self._pick_up, entity_id, is_invoice_side)
        self._pending.add(entity_id, _sides(is_invoice_side)[0])
        self.scheduler.bump(RecomputeReason.PENDING_CHANGED)
        return task

    async def _pick_up(self, entity_id: str, is_invoice_side: bool) -> LifecycleResult:
        side, other_side = _sides(is_invoice_side)
        fields = pickup_patch(self._clock())

        try:
            await self._update(side, entity_id, fields)
        except Exception as e:
            error = _as_persistence_error(e, side, entity_id)
            self._pending.discard(entity_id, side)
            self.scheduler.bump(RecomputeReason.PENDING_CHANGED)
            logger.error(f"Error marking {side} {entity_id} as picked up: {error}")
            self.events.create_and_publish(
                EventType.PICKUP_FAILED, entity_id, side=side, error=error.to_dict()
            )
            return LifecycleResult(
                operation="mark_picked_up",
                success=False,
                message=f"Failed to update {side} '{entity_id}'",
                primary=WriteOutcome.failure(side, entity_id, error),
                secondary=WriteOutcome.skipped(other_side),
                error=error,
            )

        secondary = await self._mirror_pickup(side, entity_id, other_side, fields)

        logger.info(f"{side} {entity_id} marked as picked up")
        self.scheduler.settle()
        self.events.create_and_publish(
            EventType.ORDER_PICKED_UP,
            entity_id,
            side=side,
            paired_id=secondary.entity_id,
            paired_status=secondary.status,
        )
        return LifecycleResult(
            operation="mark_picked_up",
            success=True,
            message=f"Order {entity_id} has been marked as picked up",
            primary=WriteOutcome.ok(side, entity_id),
            secondary=secondary,
        )

    async def _mirror_pickup(
        self, side: str, entity_id: str, other_side: str, fields: dict[str, Any]
    ) -> WriteOutcome:
        try:
            if side == EntitySide.INVOICE:
                paired_id = await self.store.get_invoice_work_order_ref(entity_id)
            else:
                paired_id = await self.store.get_work_order_invoice_ref(entity_id)
        except Exception as e:
            return self._paired_failure(other_side, None, entity_id, e)

        if not paired_id:
            return WriteOutcome.skipped(other_side)

        try:
            await self._update(other_side, paired_id, fields)
        except Exception as e:
            return self._paired_failure(other_side, paired_id, entity_id, e)

        return WriteOutcome.ok(other_side, paired_id)

    def _paired_failure(
        self,
        side: str,
        paired_id: Optional[str],
        primary_id: str,
        error: Exception,
    ) -> WriteOutcome:
        # The acted-on record already changed; the mirror is best effort.
        logger.error(f"Error updating {side} {paired_id or '?'} paired with {primary_id}: {error}")
        self.events.create_and_publish(
            EventType.PAIRED_WRITE_FAILED,
            paired_id,
            side=side,
            primary_id=primary_id,
            error=str(error),
        )
        return WriteOutcome.failure(side, paired_id, error)

    def prune_pending(
        self,
        invoices: Iterable[Invoice],
        work_orders: Iterable[WorkOrder] = (),
    ) -> list[str]:
        """
        Drop buffered ids the store now reports as picked up.

        Each id is matched only against records of the side it was picked
        up from.
        """
        confirmed = {
            EntitySide.INVOICE: {i.invoice_id for i in invoices if i.is_picked_up},
            EntitySide.WORK_ORDER: {wo.id for wo in work_orders if wo.is_picked_up},
        }
        pruned = []
        for side, entity_id in self._pending:
            if entity_id in confirmed[side]:
                self._pending.discard(entity_id, side)
                pruned.append(entity_id)
        return pruned

    # Archive

    def archive_order(
        self, work_order_like: Any, reason: Optional[str] = None
    ) -> "asyncio.Task[LifecycleResult]":
        """
        Archive a work order and its invoice.

        Args:
            work_order_like: A WorkOrder, OrderRef, raw row or fallback
                object carrying the ids to archive.
            reason: Archive reason; the engine default when omitted.

        Raises:
            ValueError: If no work order value is given.
        """
        ref = resolve_order_ref(work_order_like)
        return self._spawn(self._archive, ref, reason or self.archive_reason)

    def archive_invoice(
        self,
        invoice: Invoice,
        work_orders: Iterable[WorkOrder],
        reason: Optional[str] = None,
    ) -> "asyncio.Task[LifecycleResult]":
        """Archive an invoice row, locating its work order among those loaded."""
        return self.archive_order(resolve_archive_target(invoice, work_orders), reason)

    async def _archive(self, ref: OrderRef, reason: str) -> LifecycleResult:
        fields = archive_patch(self._clock(), reason)
        attempted: list[str] = []

        invoice_id = ref.invoice_id
        if invoice_id is None and ref.work_order_id:
            try:
                invoice_id = await self.store.get_work_order_invoice_ref(ref.work_order_id)
            except Exception as e:
                logger.warning(f"Could not look up invoice for work order {ref.work_order_id}: {e}")

        invoice_outcome = WriteOutcome.skipped(EntitySide.INVOICE)
        if invoice_id:
            attempted.append(EntitySide.INVOICE)
            invoice_outcome = await self._archive_side(EntitySide.INVOICE, invoice_id, fields)

        work_order_outcome = WriteOutcome.skipped(EntitySide.WORK_ORDER)
        if ref.work_order_id:
            attempted.append(EntitySide.WORK_ORDER)
            work_order_outcome = await self._archive_side(
                EntitySide.WORK_ORDER, ref.work_order_id, fields
            )

        if not (invoice_outcome.succeeded or work_order_outcome.succeeded):
            if attempted:
                message = "Could not archive: every write failed"
            else:
                message = "Could not archive: no valid work order or invoice ID"
            error = ArchiveError(
                message,
                attempted_sides=tuple(attempted),
                invoice_id=invoice_id,
                work_order_id=ref.work_order_id,
            )
            logger.error(f"Error archiving order {ref}: {message}")
            self.events.create_and_publish(
                EventType.ARCHIVE_FAILED, invoice_id or ref.work_order_id, error=error.to_dict()
            )
            return LifecycleResult(
                operation="archive_order",
                success=False,
                message=message,
                primary=invoice_outcome,
                secondary=work_order_outcome,
                error=error,
            )

        partial = invoice_outcome.failed or work_order_outcome.failed
        if partial:
            logger.warning(
                f"Archived only one side of invoice {invoice_id} / work order "
                f"{ref.work_order_id}; the pair is inconsistent until reconciled"
            )

        self.scheduler.settle()
        self.events.create_and_publish(
            EventType.ORDER_ARCHIVED,
            invoice_id or ref.work_order_id,
            invoice_id=invoice_id,
            work_order_id=ref.work_order_id,
            reason=reason,
            partial=partial,
            is_fallback=ref.is_fallback,
        )
        return LifecycleResult(
            operation="archive_order",
            success=True,
            message="Order has been archived successfully",
            primary=invoice_outcome,
            secondary=work_order_outcome,
        )

    async def _archive_side(self, side: str, entity_id: str, fields: dict[str, Any]) -> WriteOutcome:
        try:
            await self._update(side, entity_id, fields)
        except Exception as e:
            logger.error(f"Error archiving {side} {entity_id}: {e}")
            return WriteOutcome.failure(side, entity_id, e)
        logger.info(f"Archived {side} {entity_id}")
        return WriteOutcome.ok(side, entity_id)

    # Plumbing

    async def _update(self, side: str, entity_id: str, fields: dict[str, Any]) -> None:
        if side == EntitySide.INVOICE:
            await self.store.update_invoice(entity_id, fields)
        else:
            await self.store.update_work_order(entity_id, fields)

    def _spawn(
        self, operation: Callable[..., Awaitable[LifecycleResult]], *args: Any
    ) -> "asyncio.Task[LifecycleResult]":
        # Raises RuntimeError outside a running loop, before any coroutine exists
        loop = asyncio.get_running_loop()
        task = loop.create_task(operation(*args))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight operation to settle."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def close(self) -> None:
        """Wait for in-flight operations and cancel delayed recomputes."""
        await self.drain()
        self.scheduler.cancel_pending()


def _sides(is_invoice_side: bool) -> tuple[str, str]:
    if is_invoice_side:
        return EntitySide.INVOICE, EntitySide.WORK_ORDER
    return EntitySide.WORK_ORDER, EntitySide.INVOICE


def _as_persistence_error(error: Exception, side: str, entity_id: str) -> PersistenceError:
    if isinstance(error, PersistenceError):
        return error
    return PersistenceError(
        f"Failed to update {side} '{entity_id}': {error}",
        side=side,
        entity_id=entity_id,
        cause=error,
    )
