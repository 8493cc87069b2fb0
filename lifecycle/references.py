"""
Cross-reference resolution between invoices and work orders.

Rows reach the engine in several shapes: stored WorkOrder models, raw rows
using either ``invoiceId`` or ``invoice_id``, and fallback objects assembled
from an invoice when its work order was not loaded. Everything is reduced to
an OrderRef here so callers never guess at field names.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from orders.models import Invoice, OrderRef, WorkOrder

logger = logging.getLogger(__name__)

_WORK_ORDER_ID_FIELDS = ("id", "work_order_id", "workOrderId")
_INVOICE_ID_FIELDS = ("invoice_id", "invoiceId")


def _first_id(value: Any, names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        if isinstance(value, Mapping):
            candidate = value.get(name)
        else:
            candidate = getattr(value, name, None)
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return None


def fallback_ref(invoice: Invoice) -> OrderRef:
    """Build a reference from invoice fields alone."""
    return OrderRef(
        work_order_id=invoice.work_order_id or None,
        invoice_id=invoice.invoice_id,
        is_fallback=True,
    )


def resolve_order_ref(work_order_like: Any) -> OrderRef:
    """
    Normalize a work-order-like value into an OrderRef.

    Args:
        work_order_like: An OrderRef, WorkOrder, Invoice (treated as a
            fallback), mapping row, or any object exposing the id attributes.

    Returns:
        The normalized reference. It may be unresolvable (no ids at all);
        callers decide whether that is an error.
    """
    if work_order_like is None:
        raise ValueError("A work order or fallback reference is required")

    if isinstance(work_order_like, OrderRef):
        return work_order_like

    if isinstance(work_order_like, Invoice):
        return fallback_ref(work_order_like)

    if isinstance(work_order_like, WorkOrder):
        return OrderRef(
            work_order_id=work_order_like.id,
            invoice_id=work_order_like.invoice_id or None,
        )

    is_fallback = False
    if isinstance(work_order_like, Mapping):
        is_fallback = bool(work_order_like.get("is_fallback", False))

    return OrderRef(
        work_order_id=_first_id(work_order_like, _WORK_ORDER_ID_FIELDS),
        invoice_id=_first_id(work_order_like, _INVOICE_ID_FIELDS),
        is_fallback=is_fallback,
    )


def related_work_order(invoice: Invoice, work_orders: Iterable[WorkOrder]) -> Optional[WorkOrder]:
    """Find the loaded work order an invoice points at, if any."""
    work_orders = list(work_orders)
    if invoice.work_order_id:
        for work_order in work_orders:
            if work_order.id == invoice.work_order_id:
                return work_order
    for work_order in work_orders:
        if work_order.invoice_id == invoice.invoice_id:
            return work_order
    return None


def resolve_archive_target(invoice: Invoice, work_orders: Iterable[WorkOrder]) -> OrderRef:
    """
    Reference to archive for an invoice row.

    Uses the loaded work order when one matches, otherwise a fallback built
    from the invoice.
    """
    work_order = related_work_order(invoice, work_orders)
    if work_order is not None:
        ref = resolve_order_ref(work_order)
        if ref.invoice_id is None:
            ref = OrderRef(work_order_id=ref.work_order_id, invoice_id=invoice.invoice_id)
        return ref

    logger.warning(
        f"Related work order {invoice.work_order_id!r} not loaded for invoice "
        f"{invoice.invoice_id}; archiving from invoice fields"
    )
    return fallback_ref(invoice)
