"""Persistence adapter contract and an in-memory implementation."""

import logging
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from lifecycle.errors import EntitySide, PersistenceError
from orders.models import Invoice, WorkOrder
from orders.status import TransitionError, apply_status_patch

logger = logging.getLogger(__name__)


class OrderStore(Protocol):
    """
    Keyed access to the ``invoices`` and ``work_orders`` tables.

    Implementations raise PersistenceError when a read or write fails.
    Reference lookups return None when the row carries no link.
    """

    async def update_invoice(self, invoice_id: str, fields: dict[str, Any]) -> None:
        """Update named fields on the invoice keyed by ``invoice_id``."""
        ...

    async def update_work_order(self, work_order_id: str, fields: dict[str, Any]) -> None:
        """Update named fields on the work order keyed by ``id``."""
        ...

    async def get_invoice_work_order_ref(self, invoice_id: str) -> Optional[str]:
        """Return the work order id linked from an invoice."""
        ...

    async def get_work_order_invoice_ref(self, work_order_id: str) -> Optional[str]:
        """Return the invoice id linked from a work order."""
        ...


class InMemoryOrderStore:
    """Simple in-memory order store for development/testing."""

    def __init__(self) -> None:
        self._invoices: dict[str, Invoice] = {}
        self._work_orders: dict[str, WorkOrder] = {}

    def add_invoice(self, invoice: Invoice) -> Invoice:
        self._invoices[invoice.invoice_id] = invoice
        return invoice

    def add_work_order(self, work_order: WorkOrder) -> WorkOrder:
        self._work_orders[work_order.id] = work_order
        return work_order

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        return self._invoices.get(invoice_id)

    def get_work_order(self, work_order_id: str) -> Optional[WorkOrder]:
        return self._work_orders.get(work_order_id)

    def list_invoices(self) -> list[Invoice]:
        return list(self._invoices.values())

    def list_work_orders(self) -> list[WorkOrder]:
        return list(self._work_orders.values())

    async def update_invoice(self, invoice_id: str, fields: dict[str, Any]) -> None:
        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            raise PersistenceError(
                f"Invoice '{invoice_id}' not found",
                side=EntitySide.INVOICE,
                entity_id=invoice_id,
            )
        self._invoices[invoice_id] = self._patch(EntitySide.INVOICE, invoice_id, invoice, fields)

    async def update_work_order(self, work_order_id: str, fields: dict[str, Any]) -> None:
        work_order = self._work_orders.get(work_order_id)
        if work_order is None:
            raise PersistenceError(
                f"Work order '{work_order_id}' not found",
                side=EntitySide.WORK_ORDER,
                entity_id=work_order_id,
            )
        self._work_orders[work_order_id] = self._patch(
            EntitySide.WORK_ORDER, work_order_id, work_order, fields
        )

    async def get_invoice_work_order_ref(self, invoice_id: str) -> Optional[str]:
        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            raise PersistenceError(
                f"Invoice '{invoice_id}' not found",
                side=EntitySide.INVOICE,
                entity_id=invoice_id,
            )
        return invoice.work_order_id

    async def get_work_order_invoice_ref(self, work_order_id: str) -> Optional[str]:
        work_order = self._work_orders.get(work_order_id)
        if work_order is None:
            raise PersistenceError(
                f"Work order '{work_order_id}' not found",
                side=EntitySide.WORK_ORDER,
                entity_id=work_order_id,
            )
        return work_order.invoice_id

    @staticmethod
    def _patch(side: str, entity_id: str, record: Any, fields: dict[str, Any]) -> Any:
        unknown = set(fields) - set(type(record).model_fields)
        if unknown:
            raise PersistenceError(
                f"Unknown {side} fields: {sorted(unknown)}",
                side=side,
                entity_id=entity_id,
            )
        try:
            patched = apply_status_patch(entity_id, record, fields)
        except (TransitionError, ValidationError) as e:
            raise PersistenceError(
                f"Rejected update to {side} '{entity_id}': {e}",
                side=side,
                entity_id=entity_id,
                cause=e,
            ) from e
        logger.debug(f"Updated {side} {entity_id}: {sorted(fields)}")
        return patched
