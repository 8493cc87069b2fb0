"""Database-backed order store implementation."""

import asyncio
import logging
from typing import Any, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.models import InvoiceModel, WorkOrderModel
from database.session import session_scope
from lifecycle.errors import EntitySide, PersistenceError
from orders.models import Invoice, WorkOrder
from orders.status import TransitionError, apply_status_patch

logger = logging.getLogger(__name__)

RowModel = Union[InvoiceModel, WorkOrderModel]


def _row_data(row: RowModel) -> dict[str, Any]:
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


def to_invoice(row: InvoiceModel) -> Invoice:
    return Invoice.model_validate(_row_data(row))


def to_work_order(row: WorkOrderModel) -> WorkOrder:
    return WorkOrder.model_validate(_row_data(row))


class DatabaseOrderStore:
    """
    Order store using SQLAlchemy.

    Implements the OrderStore protocol. Session work is synchronous and runs
    in a worker thread so the event loop is never blocked.
    """

    # OrderStore protocol

    async def update_invoice(self, invoice_id: str, fields: dict[str, Any]) -> None:
        await asyncio.to_thread(self._update, EntitySide.INVOICE, invoice_id, fields)

    async def update_work_order(self, work_order_id: str, fields: dict[str, Any]) -> None:
        await asyncio.to_thread(self._update, EntitySide.WORK_ORDER, work_order_id, fields)

    async def get_invoice_work_order_ref(self, invoice_id: str) -> Optional[str]:
        return await asyncio.to_thread(self._get_ref, EntitySide.INVOICE, invoice_id)

    async def get_work_order_invoice_ref(self, work_order_id: str) -> Optional[str]:
        return await asyncio.to_thread(self._get_ref, EntitySide.WORK_ORDER, work_order_id)

    # Collaborator operations

    def save_invoice(self, invoice: Invoice) -> Invoice:
        """Insert or replace an invoice row."""
        with session_scope() as session:
            row = self._find(session, EntitySide.INVOICE, invoice.invoice_id)
            if row is None:
                row = InvoiceModel(invoice_id=invoice.invoice_id)
                session.add(row)
            for key, value in invoice.model_dump(exclude={"invoice_id"}).items():
                setattr(row, key, value)
        return invoice

    def save_work_order(self, work_order: WorkOrder) -> WorkOrder:
        """Insert or replace a work order row."""
        with session_scope() as session:
            row = self._find(session, EntitySide.WORK_ORDER, work_order.id)
            if row is None:
                row = WorkOrderModel(id=work_order.id)
                session.add(row)
            for key, value in work_order.model_dump(exclude={"id"}).items():
                setattr(row, key, value)
        return work_order

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        with session_scope() as session:
            row = self._find(session, EntitySide.INVOICE, invoice_id)
            return to_invoice(row) if row else None

    def get_work_order(self, work_order_id: str) -> Optional[WorkOrder]:
        with session_scope() as session:
            row = self._find(session, EntitySide.WORK_ORDER, work_order_id)
            return to_work_order(row) if row else None

    def list_invoices(
        self,
        archived: Optional[bool] = None,
        patient_id: Optional[str] = None,
    ) -> list[Invoice]:
        """
        List invoices newest first.

        Args:
            archived: Only archived (True) or only live (False) rows.
            patient_id: Filter by patient.
        """
        with session_scope() as session:
            query = session.query(InvoiceModel)
            if archived is not None:
                query = query.filter(InvoiceModel.is_archived == archived)
            if patient_id:
                query = query.filter(InvoiceModel.patient_id == patient_id)
            query = query.order_by(InvoiceModel.created_at.desc())
            return [to_invoice(row) for row in query.all()]

    def list_work_orders(
        self,
        archived: Optional[bool] = None,
        patient_id: Optional[str] = None,
    ) -> list[WorkOrder]:
        """List work orders newest first."""
        with session_scope() as session:
            query = session.query(WorkOrderModel)
            if archived is not None:
                query = query.filter(WorkOrderModel.is_archived == archived)
            if patient_id:
                query = query.filter(WorkOrderModel.patient_id == patient_id)
            query = query.order_by(WorkOrderModel.created_at.desc())
            return [to_work_order(row) for row in query.all()]

    # Internals

    @staticmethod
    def _find(session: Session, side: str, entity_id: str) -> Optional[RowModel]:
        if side == EntitySide.INVOICE:
            return (
                session.query(InvoiceModel)
                .filter(InvoiceModel.invoice_id == entity_id)
                .first()
            )
        return session.query(WorkOrderModel).filter(WorkOrderModel.id == entity_id).first()

    def _update(self, side: str, entity_id: str, fields: dict[str, Any]) -> None:
        try:
            with session_scope() as session:
                row = self._find(session, side, entity_id)
                if row is None:
                    raise PersistenceError(
                        f"{side} '{entity_id}' not found",
                        side=side,
                        entity_id=entity_id,
                    )

                columns = {column.key for column in row.__table__.columns}
                unknown = set(fields) - columns
                if unknown:
                    raise PersistenceError(
                        f"Unknown {side} fields: {sorted(unknown)}",
                        side=side,
                        entity_id=entity_id,
                    )

                current = to_invoice(row) if side == EntitySide.INVOICE else to_work_order(row)
                apply_status_patch(entity_id, current, fields)

                for key, value in fields.items():
                    setattr(row, key, value)
        except (TransitionError, ValidationError, SQLAlchemyError) as e:
            raise PersistenceError(
                f"Failed to update {side} '{entity_id}': {e}",
                side=side,
                entity_id=entity_id,
                cause=e,
            ) from e

        logger.debug(f"Updated {side} {entity_id}: {sorted(fields)}")

    def _get_ref(self, side: str, entity_id: str) -> Optional[str]:
        try:
            with session_scope() as session:
                row = self._find(session, side, entity_id)
                if row is None:
                    raise PersistenceError(
                        f"{side} '{entity_id}' not found",
                        side=side,
                        entity_id=entity_id,
                    )
                if side == EntitySide.INVOICE:
                    return row.work_order_id
                return row.invoice_id
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to read {side} '{entity_id}': {e}",
                side=side,
                entity_id=entity_id,
                cause=e,
            ) from e
