"""Pickup/archive status machine using the transitions library."""

import logging
from datetime import datetime
from typing import Any, Optional, TypeVar

from transitions import Machine, MachineError

from orders.models import _Record

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=_Record)

STATUS_FIELDS = frozenset(
    {
        "is_picked_up",
        "picked_up_at",
        "is_archived",
        "archived_at",
        "archive_reason",
    }
)


class OrderStatus(str):
    """Combined pickup and archive status of an invoice or work order."""

    OPEN = "open"
    PICKED_UP = "picked_up"
    ARCHIVED = "archived"
    PICKED_UP_ARCHIVED = "picked_up_archived"

    @classmethod
    def all_states(cls) -> list[str]:
        return [cls.OPEN, cls.PICKED_UP, cls.ARCHIVED, cls.PICKED_UP_ARCHIVED]

    @classmethod
    def from_flags(cls, is_picked_up: bool, is_archived: bool) -> str:
        if is_picked_up and is_archived:
            return cls.PICKED_UP_ARCHIVED
        if is_picked_up:
            return cls.PICKED_UP
        if is_archived:
            return cls.ARCHIVED
        return cls.OPEN

    @classmethod
    def flags(cls, state: str) -> tuple[bool, bool]:
        """Return (is_picked_up, is_archived) for a state."""
        return (
            state in (cls.PICKED_UP, cls.PICKED_UP_ARCHIVED),
            state in (cls.ARCHIVED, cls.PICKED_UP_ARCHIVED),
        )


class TransitionError(Exception):
    """Raised when a status change would move an entity backwards."""

    def __init__(
        self,
        message: str,
        current_state: str,
        attempted_trigger: str,
        entity_id: Optional[str] = None,
    ):
        self.current_state = current_state
        self.attempted_trigger = attempted_trigger
        self.entity_id = entity_id
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "TransitionError",
            "message": str(self),
            "current_state": self.current_state,
            "attempted_trigger": self.attempted_trigger,
            "entity_id": self.entity_id,
        }


class OrderStatusFSM:
    """
    Status machine for one invoice or work order.

    There are no reverse triggers, so once picked up or archived an entity
    stays that way. Repeating a trigger keeps the state.
    """

    TRANSITIONS = [
        {"trigger": "pick_up", "source": OrderStatus.OPEN, "dest": OrderStatus.PICKED_UP},
        {"trigger": "pick_up", "source": OrderStatus.PICKED_UP, "dest": OrderStatus.PICKED_UP},
        {
            "trigger": "pick_up",
            "source": OrderStatus.ARCHIVED,
            "dest": OrderStatus.PICKED_UP_ARCHIVED,
        },
        {
            "trigger": "pick_up",
            "source": OrderStatus.PICKED_UP_ARCHIVED,
            "dest": OrderStatus.PICKED_UP_ARCHIVED,
        },
        {"trigger": "archive", "source": OrderStatus.OPEN, "dest": OrderStatus.ARCHIVED},
        {"trigger": "archive", "source": OrderStatus.ARCHIVED, "dest": OrderStatus.ARCHIVED},
        {
            "trigger": "archive",
            "source": OrderStatus.PICKED_UP,
            "dest": OrderStatus.PICKED_UP_ARCHIVED,
        },
        {
            "trigger": "archive",
            "source": OrderStatus.PICKED_UP_ARCHIVED,
            "dest": OrderStatus.PICKED_UP_ARCHIVED,
        },
    ]

    def __init__(self, entity_id: str, initial_state: str = OrderStatus.OPEN):
        if initial_state not in OrderStatus.all_states():
            raise ValueError(f"Invalid initial state: {initial_state}")

        self.entity_id = entity_id
        self.machine = Machine(
            model=self,
            states=OrderStatus.all_states(),
            transitions=self.TRANSITIONS,
            initial=initial_state,
            auto_transitions=False,
        )

    @classmethod
    def for_record(cls, entity_id: str, record: _Record) -> "OrderStatusFSM":
        return cls(entity_id, OrderStatus.from_flags(record.is_picked_up, record.is_archived))

    @property
    def current_state(self) -> str:
        return self.state  # type: ignore[return-value]

    def fire(self, trigger_name: str) -> str:
        """Run a trigger and return the new state."""
        previous_state = self.current_state
        try:
            getattr(self, trigger_name)()
        except (AttributeError, MachineError) as e:
            raise TransitionError(
                f"Cannot execute '{trigger_name}' from state '{previous_state}'",
                current_state=previous_state,
                attempted_trigger=trigger_name,
                entity_id=self.entity_id,
            ) from e

        logger.debug(
            f"{self.entity_id}: '{trigger_name}' {previous_state} -> {self.current_state}"
        )
        return self.current_state

    def __repr__(self) -> str:
        return f"OrderStatusFSM(entity_id={self.entity_id!r}, state={self.current_state!r})"


def pickup_patch(at: datetime) -> dict[str, Any]:
    """Fields written when an order is collected."""
    return {"is_picked_up": True, "picked_up_at": at}


def archive_patch(at: datetime, reason: str) -> dict[str, Any]:
    """Fields written when an order is soft-deleted."""
    return {"is_archived": True, "archived_at": at, "archive_reason": reason}


def apply_status_patch(entity_id: str, record: R, fields: dict[str, Any]) -> R:
    """
    Return a copy of ``record`` with ``fields`` applied.

    Raises:
        TransitionError: If the patch would clear ``is_picked_up`` or
            ``is_archived`` on a record that already has it set.
    """
    fsm = OrderStatusFSM.for_record(entity_id, record)

    for flag, trigger in (("is_picked_up", "pick_up"), ("is_archived", "archive")):
        if flag not in fields:
            continue
        if fields[flag]:
            fsm.fire(trigger)
        elif getattr(record, flag):
            raise TransitionError(
                f"Cannot clear '{flag}' on {entity_id}",
                current_state=fsm.current_state,
                attempted_trigger=f"clear_{flag}",
                entity_id=entity_id,
            )

    data = record.model_dump()
    data.update(fields)
    return type(record).model_validate(data)
