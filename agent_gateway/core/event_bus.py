"""In-process publish/subscribe channel for lifecycle notifications."""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Union

import structlog

from .models import Message, now_ms

logger = structlog.get_logger(__name__)


class EventType(str, Enum):
    AGENT_REGISTERED = "agent.registered"
    AGENT_UNREGISTERED = "agent.unregistered"
    TASK_SUBMITTED = "task.submitted"
    TASK_ASSIGNED = "task.assigned"
    TASK_STARTED = "task.started"
    TASK_PROGRESS = "task.progress"
    TASK_COMPLETED = "task.completed"
    TASK_FAILED = "task.failed"
    CONTEXT_UPDATED = "context.updated"


@dataclass(frozen=True, slots=True)
class Event:
    """Envelope handed to every subscriber."""

    type: EventType
    payload: Message
    timestamp: int = field(default_factory=now_ms)


Handler = Callable[[Event], None]


class EventBus:
    """Keyed publish/subscribe hub with per-type listener lists.

    Delivery is synchronous and follows subscription order. A handler that
    raises is logged and skipped; the remaining handlers still receive the
    event. There is no history: a late subscriber never sees past events.
    """

    def __init__(self) -> None:
        self._handlers: Dict[EventType, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Union[EventType, str], handler: Handler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that removes it again."""
        key = EventType(event_type)
        self._handlers[key].append(handler)
        logger.debug("event_bus.subscribed", event_type=key.value)

        def unsubscribe() -> None:
            handlers = self._handlers.get(key)
            if handlers and handler in handlers:
                handlers.remove(handler)
                logger.debug("event_bus.unsubscribed", event_type=key.value)

        return unsubscribe

    def publish(self, event_type: Union[EventType, str], message: Message) -> Event:
        key = EventType(event_type)
        event = Event(type=key, payload=message)
        # Snapshot so handlers may unsubscribe while being notified.
        for handler in list(self._handlers.get(key, ())):
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "event_bus.handler_failed",
                    event_type=key.value,
                    message_id=message.id,
                )
        logger.info("event_bus.published", event_type=key.value, message_id=message.id)
        return event

    def listener_count(self, event_type: Union[EventType, str]) -> int:
        return len(self._handlers.get(EventType(event_type), ()))

    @staticmethod
    def event_types() -> List[EventType]:
        return list(EventType)
