"""Notification channel for lifecycle operation outcomes."""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Optional
from uuid import uuid4

from orders.models import utcnow

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """All lifecycle event types."""

    ORDER_PICKED_UP = "order_picked_up"
    PICKUP_FAILED = "pickup_failed"
    ORDER_ARCHIVED = "order_archived"
    ARCHIVE_FAILED = "archive_failed"
    PAIRED_WRITE_FAILED = "paired_write_failed"


@dataclass
class LifecycleEvent:
    """An event fired when a lifecycle write settles."""

    event_type: EventType
    entity_id: Optional[str]
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    event_id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "entity_id": self.entity_id,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload,
        }


EventHandler = Callable[[LifecycleEvent], None]


@dataclass
class _Subscription:
    handler: EventHandler
    event_types: frozenset[EventType]


class EventBus:
    """
    Event bus with per-subscriber filtering and history.

    A handler that raises is logged and skipped; publishing never fails.
    """

    def __init__(self, max_history: int = 1000) -> None:
        """
        Args:
            max_history: Events kept for get_history; the oldest are dropped.
        """
        self._subscriptions: list[_Subscription] = []
        self._history: deque[LifecycleEvent] = deque(maxlen=max_history)

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Optional[Iterable[EventType]] = None,
    ) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            handler: Called with each matching event.
            event_types: Types to receive. All types when omitted.

        Returns:
            A callable that removes the subscription.
        """
        subscription = _Subscription(
            handler=handler,
            event_types=frozenset(event_types or EventType),
        )
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def publish(self, event: LifecycleEvent) -> None:
        self._history.append(event)
        logger.info(f"Publishing event: {event.event_type.value} for {event.entity_id}")

        for subscription in list(self._subscriptions):
            if event.event_type not in subscription.event_types:
                continue
            try:
                subscription.handler(event)
            except Exception as e:
                logger.error(f"Subscriber error handling {event.event_type.value}: {e}")

    def create_and_publish(
        self,
        event_type: EventType,
        entity_id: Optional[str],
        **payload: Any,
    ) -> LifecycleEvent:
        event = LifecycleEvent(event_type=event_type, entity_id=entity_id, payload=payload)
        self.publish(event)
        return event

    def get_history(
        self,
        event_type: Optional[EventType] = None,
        entity_id: Optional[str] = None,
    ) -> list[LifecycleEvent]:
        events = self._history
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        if entity_id:
            events = [e for e in events if e.entity_id == entity_id]
        return list(events)

    def clear_history(self) -> None:
        """Clear event history (for testing)."""
        self._history.clear()
