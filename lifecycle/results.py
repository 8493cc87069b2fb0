"""Result types returned by lifecycle operations."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from lifecycle.errors import LifecycleError
from orders.models import utcnow


class WriteStatus(str):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class WriteOutcome(BaseModel):
    """Outcome of one store write within a lifecycle operation."""

    side: str
    entity_id: Optional[str] = None
    status: str = WriteStatus.SKIPPED
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == WriteStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == WriteStatus.FAILED

    @classmethod
    def ok(cls, side: str, entity_id: str) -> "WriteOutcome":
        return cls(side=side, entity_id=entity_id, status=WriteStatus.SUCCEEDED)

    @classmethod
    def failure(cls, side: str, entity_id: Optional[str], error: BaseException) -> "WriteOutcome":
        return cls(side=side, entity_id=entity_id, status=WriteStatus.FAILED, error=str(error))

    @classmethod
    def skipped(cls, side: str, entity_id: Optional[str] = None) -> "WriteOutcome":
        return cls(side=side, entity_id=entity_id, status=WriteStatus.SKIPPED)


class LifecycleResult(BaseModel):
    """
    Two-outcome result of a pickup or archive.

    ``primary`` is the record the user acted on (for archive, the invoice)
    and ``secondary`` its paired record.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    operation: str
    success: bool
    message: str
    primary: WriteOutcome
    secondary: WriteOutcome
    error: Optional[LifecycleError] = None
    completed_at: datetime = Field(default_factory=utcnow)

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        result = {
            "operation": self.operation,
            "success": self.success,
            "message": self.message,
            "primary": self.primary.model_dump(),
            "secondary": self.secondary.model_dump(),
            "completed_at": self.completed_at.isoformat(),
        }
        if self.error:
            result["error"] = self.error.to_dict()
        return result
