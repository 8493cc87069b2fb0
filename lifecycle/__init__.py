"""Pickup and archive lifecycle for linked invoices and work orders."""

from lifecycle.config import Settings, configure_logging, get_settings
from lifecycle.engine import LifecycleEngine, PendingPickups
from lifecycle.errors import ArchiveError, EntitySide, LifecycleError, PersistenceError
from lifecycle.events import EventBus, EventType, LifecycleEvent
from lifecycle.references import (
    fallback_ref,
    related_work_order,
    resolve_archive_target,
    resolve_order_ref,
)
from lifecycle.results import LifecycleResult, WriteOutcome, WriteStatus
from lifecycle.store import InMemoryOrderStore, OrderStore

__all__ = [
    "Settings",
    "configure_logging",
    "get_settings",
    "LifecycleEngine",
    "PendingPickups",
    "ArchiveError",
    "EntitySide",
    "LifecycleError",
    "PersistenceError",
    "EventBus",
    "EventType",
    "LifecycleEvent",
    "fallback_ref",
    "related_work_order",
    "resolve_archive_target",
    "resolve_order_ref",
    "LifecycleResult",
    "WriteOutcome",
    "WriteStatus",
    "InMemoryOrderStore",
    "OrderStore",
]
