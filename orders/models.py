"""Core domain models for invoices and their work orders."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _Record(BaseModel):
    """Status fields shared by invoices and work orders."""

    # Rows arrive either snake_case (database) or camelCase (client payloads)
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    is_paid: bool = False
    is_picked_up: bool = False
    picked_up_at: Optional[datetime] = None
    is_refunded: bool = False
    refund_date: Optional[datetime] = None
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    archive_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_edited_at: Optional[datetime] = None

    @field_validator(
        "picked_up_at",
        "refund_date",
        "archived_at",
        "created_at",
        "last_edited_at",
        mode="after",
    )
    @classmethod
    def _normalize_tz(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @property
    def archived_sort_key(self) -> datetime:
        """archived_at, or created_at when the archive time is missing."""
        return self.archived_at or self.created_at

    @property
    def has_been_edited(self) -> bool:
        return self.last_edited_at is not None


class Invoice(_Record):
    """Billing record for a sale."""

    invoice_id: str = Field(..., min_length=1, description="Invoice identifier (e.g., INV-001)")
    work_order_id: Optional[str] = None
    patient_id: Optional[str] = None
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    total: Decimal = Field(default=Decimal("0"), ge=0)
    remaining: Decimal = Field(default=Decimal("0"), ge=0)


class WorkOrder(_Record):
    """Fulfillment record for the goods on an invoice."""

    id: str = Field(..., min_length=1)
    invoice_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("invoiceId", "invoice_id"),
    )
    patient_id: Optional[str] = None
    total: Optional[Decimal] = Field(default=None, ge=0)


class OrderRef(BaseModel):
    """
    Normalized link between an invoice and its work order.

    Either side may be missing. ``is_fallback`` marks references synthesized
    from invoice fields because no stored work order was found.
    """

    model_config = ConfigDict(frozen=True)

    work_order_id: Optional[str] = None
    invoice_id: Optional[str] = None
    is_fallback: bool = False

    @property
    def is_resolvable(self) -> bool:
        return bool(self.work_order_id or self.invoice_id)
