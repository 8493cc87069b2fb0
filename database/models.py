"""
SQLAlchemy models for the order tables.

Tables:
- invoices: Billing records keyed by invoice_id
- work_orders: Fulfillment records keyed by id

The two tables reference each other by plain id columns. There is no
foreign key: either side may point at a row that was never loaded or has
not been created yet.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class StatusColumns:
    """Pickup, refund and archive columns shared by both tables."""

    is_paid = Column(Boolean, default=False, nullable=False)
    is_picked_up = Column(Boolean, default=False, nullable=False, index=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    is_refunded = Column(Boolean, default=False, nullable=False)
    refund_date = Column(DateTime(timezone=True), nullable=True)
    is_archived = Column(Boolean, default=False, nullable=False, index=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archive_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    last_edited_at = Column(DateTime(timezone=True), nullable=True)


class InvoiceModel(StatusColumns, Base):
    """Invoice table."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(String(50), unique=True, nullable=False, index=True)
    work_order_id = Column(String(50), nullable=True, index=True)

    # Denormalized customer details
    patient_id = Column(String(50), nullable=True, index=True)
    patient_name = Column(String(255), nullable=True)
    patient_phone = Column(String(30), nullable=True)

    total = Column(Numeric(12, 3), default=0, nullable=False)
    remaining = Column(Numeric(12, 3), default=0, nullable=False)

    __table_args__ = (
        Index("ix_invoices_archived_created", "is_archived", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_id} picked_up={self.is_picked_up} archived={self.is_archived}>"


class WorkOrderModel(StatusColumns, Base):
    """Work order table."""

    __tablename__ = "work_orders"

    id = Column(String(50), primary_key=True)
    invoice_id = Column(String(50), nullable=True, index=True)
    patient_id = Column(String(50), nullable=True, index=True)
    total = Column(Numeric(12, 3), nullable=True)

    __table_args__ = (
        Index("ix_work_orders_archived_created", "is_archived", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<WorkOrder {self.id} invoice={self.invoice_id} archived={self.is_archived}>"
