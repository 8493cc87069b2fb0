"""Structured errors reported by the lifecycle engine."""

from typing import Any, Optional


class EntitySide(str):
    """Which table of the invoice/work order pair an operation touched."""

    INVOICE = "invoice"
    WORK_ORDER = "work_order"


class LifecycleError(Exception):
    """Base class for lifecycle failures."""

    code = "LIFECYCLE_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "code": self.code, "message": str(self)}


class PersistenceError(LifecycleError):
    """A store read or write failed (network, permission, not found)."""

    code = "PERSISTENCE_ERROR"

    def __init__(
        self,
        message: str,
        side: Optional[str] = None,
        entity_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.side = side
        self.entity_id = entity_id
        self.cause = cause
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "side": self.side,
                "entity_id": self.entity_id,
                "cause": str(self.cause) if self.cause else None,
            }
        )
        return data


class ArchiveError(LifecycleError):
    """Neither side of the pair could be archived."""

    code = "ARCHIVE_FAILED"

    def __init__(
        self,
        message: str,
        attempted_sides: tuple[str, ...] = (),
        invoice_id: Optional[str] = None,
        work_order_id: Optional[str] = None,
    ):
        self.attempted_sides = attempted_sides
        self.invoice_id = invoice_id
        self.work_order_id = work_order_id
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "attempted_sides": list(self.attempted_sides),
                "invoice_id": self.invoice_id,
                "work_order_id": self.work_order_id,
            }
        )
        return data
