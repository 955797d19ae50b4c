"""Tests for the in-process event bus."""
from __future__ import annotations

from typing import List

from agent_gateway.core.event_bus import Event, EventBus, EventType
from agent_gateway.core.models import Message


def test_handlers_run_in_subscription_order() -> None:
    bus = EventBus()
    calls: List[str] = []
    bus.subscribe(EventType.TASK_SUBMITTED, lambda event: calls.append("first"))
    bus.subscribe("task.submitted", lambda event: calls.append("second"))

    bus.publish(EventType.TASK_SUBMITTED, Message.request("hello"))

    assert calls == ["first", "second"]


def test_envelope_carries_type_payload_and_timestamp() -> None:
    bus = EventBus()
    received: List[Event] = []
    bus.subscribe(EventType.TASK_COMPLETED, received.append)
    message = Message.request("hello")

    bus.publish(EventType.TASK_COMPLETED, message)

    assert len(received) == 1
    assert received[0].type is EventType.TASK_COMPLETED
    assert received[0].payload is message
    assert received[0].timestamp > 0


def test_events_are_delivered_only_to_matching_type() -> None:
    bus = EventBus()
    received: List[Event] = []
    bus.subscribe(EventType.TASK_FAILED, received.append)

    bus.publish(EventType.TASK_COMPLETED, Message.request("hello"))

    assert received == []


def test_late_subscriber_never_sees_past_events() -> None:
    bus = EventBus()
    bus.publish(EventType.TASK_SUBMITTED, Message.request("early"))
    received: List[Event] = []
    bus.subscribe(EventType.TASK_SUBMITTED, received.append)

    bus.publish(EventType.TASK_SUBMITTED, Message.request("late"))

    assert [event.payload.task_text for event in received] == ["late"]


def test_unsubscribe_stops_only_that_handler() -> None:
    bus = EventBus()
    kept: List[Event] = []
    dropped: List[Event] = []
    bus.subscribe(EventType.TASK_STARTED, kept.append)
    unsubscribe = bus.subscribe(EventType.TASK_STARTED, dropped.append)

    unsubscribe()
    unsubscribe()
    bus.publish(EventType.TASK_STARTED, Message.request("hello"))

    assert len(kept) == 1
    assert dropped == []
    assert bus.listener_count(EventType.TASK_STARTED) == 1


def test_failing_handler_does_not_block_later_handlers() -> None:
    bus = EventBus()
    received: List[Event] = []

    def broken(event: Event) -> None:
        raise RuntimeError("boom")

    bus.subscribe(EventType.TASK_FAILED, broken)
    bus.subscribe(EventType.TASK_FAILED, received.append)

    bus.publish(EventType.TASK_FAILED, Message.request("hello"))

    assert len(received) == 1


def test_event_types_cover_task_agent_and_context_events() -> None:
    values = {event_type.value for event_type in EventBus.event_types()}

    assert {"task.submitted", "task.progress", "agent.registered", "context.updated"} <= values
