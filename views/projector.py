"""
Optimistic view projector.

Splits an invoice snapshot into the active, completed, refunded and archived
views. Invoices in the pending-pickup buffer are shown as completed before
the store reports them picked up.
"""

from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from orders.models import Invoice, WorkOrder


class Tab(str, Enum):
    """Display partitions."""

    ACTIVE = "active"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class Partitions:
    """The four views derived from one snapshot."""

    active: list[Invoice] = field(default_factory=list)
    completed: list[Invoice] = field(default_factory=list)
    refunded: list[Invoice] = field(default_factory=list)
    archived_invoices: list[Invoice] = field(default_factory=list)
    archived_work_orders: list[WorkOrder] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        """Badge counts per tab."""
        return {
            Tab.ACTIVE.value: len(self.active),
            Tab.COMPLETED.value: len(self.completed),
            Tab.REFUNDED.value: len(self.refunded),
            Tab.ARCHIVED.value: len(self.archived_invoices) + len(self.archived_work_orders),
        }

    def tab_of(self, invoice_id: str) -> Optional[Tab]:
        """Which of active/completed/refunded holds an invoice."""
        for tab, invoices in (
            (Tab.ACTIVE, self.active),
            (Tab.COMPLETED, self.completed),
            (Tab.REFUNDED, self.refunded),
        ):
            if any(invoice.invoice_id == invoice_id for invoice in invoices):
                return tab
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": [i.invoice_id for i in self.active],
            "completed": [i.invoice_id for i in self.completed],
            "refunded": [i.invoice_id for i in self.refunded],
            "archived_invoices": [i.invoice_id for i in self.archived_invoices],
            "archived_work_orders": [w.id for w in self.archived_work_orders],
        }


def newest_first(invoices: Iterable[Invoice]) -> list[Invoice]:
    return sorted(invoices, key=lambda invoice: invoice.created_at, reverse=True)


def newest_archived_first(records: Iterable[Any]) -> list[Any]:
    return sorted(records, key=lambda record: record.archived_sort_key, reverse=True)


def unique_by_invoice_id(invoices: Iterable[Invoice]) -> list[Invoice]:
    """Drop repeated invoice ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique = []
    for invoice in invoices:
        if invoice.invoice_id in seen:
            continue
        seen.add(invoice.invoice_id)
        unique.append(invoice)
    return unique


def partition(
    invoices: Iterable[Invoice],
    work_orders: Iterable[WorkOrder],
    pending: Collection[str],
    archived_invoices: Optional[Iterable[Invoice]] = None,
    archived_work_orders: Optional[Iterable[WorkOrder]] = None,
    refunded_invoices: Optional[Iterable[Invoice]] = None,
) -> Partitions:
    """
    Derive the display partitions.

    Args:
        invoices: Current invoice snapshot.
        work_orders: Current work order snapshot.
        pending: Invoice ids picked up locally but not yet confirmed.
        archived_invoices: Archived invoices; taken from ``invoices`` when omitted.
        archived_work_orders: Archived work orders; taken from ``work_orders``
            when omitted.
        refunded_invoices: Refunded invoices as supplied by the refund
            collaborator; taken from ``invoices`` when omitted.

    Returns:
        Partitions where every invoice id is in at most one of
        active/completed/refunded.
    """
    invoices = list(invoices)
    work_orders = list(work_orders)

    if refunded_invoices is None:
        refunded = [invoice for invoice in invoices if invoice.is_refunded]
    else:
        refunded = list(refunded_invoices)
    refunded = newest_first(unique_by_invoice_id(refunded))
    refunded_ids = {invoice.invoice_id for invoice in refunded}

    def is_refunded(invoice: Invoice) -> bool:
        return invoice.is_refunded or invoice.invoice_id in refunded_ids

    active = newest_first(
        invoice
        for invoice in invoices
        if not invoice.is_picked_up
        and not is_refunded(invoice)
        and invoice.invoice_id not in pending
    )

    confirmed = [i for i in invoices if i.is_picked_up and not is_refunded(i)]
    optimistic = [i for i in invoices if i.invoice_id in pending and not is_refunded(i)]
    completed = newest_first(unique_by_invoice_id(confirmed + optimistic))

    if archived_invoices is None:
        archived_invoices = [invoice for invoice in invoices if invoice.is_archived]
    if archived_work_orders is None:
        archived_work_orders = [work_order for work_order in work_orders if work_order.is_archived]

    return Partitions(
        active=active,
        completed=completed,
        refunded=refunded,
        archived_invoices=newest_archived_first(archived_invoices),
        archived_work_orders=newest_archived_first(archived_work_orders),
    )
