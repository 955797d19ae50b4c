"""Tests for task lifecycle management and dispatch strategies."""
from __future__ import annotations

import asyncio
from typing import List

import pytest

from agent_gateway.agents.base import AgentBackend
from agent_gateway.agents.echo import EchoBackend
from agent_gateway.core.errors import InvalidTransitionError, NoAgentAvailableError, TaskNotFoundError
from agent_gateway.core.event_bus import Event, EventType
from agent_gateway.core.models import (
    AgentStatus,
    ErrorInfo,
    Message,
    MessageType,
    RoutingRule,
    Strategy,
    TaskStatus,
)
from agent_gateway.runtime import GatewayContext


class ErrorReplyBackend(AgentBackend):
    """Backend that reports failure inside the response instead of raising."""

    async def invoke(self, request: Message) -> Message:
        return request.reply(self.agent_id, error=ErrorInfo(code="EXECUTION_ERROR", message="exit 2"))

    async def health(self) -> bool:
        return True


class GatedBackend(AgentBackend):
    """Backend that blocks until released, to observe in-flight ordering."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(agent_id, agent_id)
        self.release = asyncio.Event()

    async def invoke(self, request: Message) -> Message:
        await self.release.wait()
        return request.reply(self.agent_id, result=f"{self.agent_id} done")

    async def health(self) -> bool:
        return True


def broadcast_rule(*agents: str) -> RoutingRule:
    return RoutingRule(
        name="review",
        keywords=("review",),
        strategy=Strategy.BROADCAST,
        agents=tuple(agents),
        priority=10,
    )


@pytest.mark.anyio
async def test_direct_task_completes_and_records_conversation(ctx: GatewayContext, events: List[Event]) -> None:
    ctx.directory.register(EchoBackend("coder", "Coder"))
    ctx.router.configure([], default_agent="coder")
    space_id = await ctx.store.create_shared_space()
    request = Message.request("write a parser", shared_space_id=space_id)

    task = await ctx.tasks.process_task(request)

    assert task.status is TaskStatus.COMPLETED
    assert task.assigned_agents == ["coder"]
    assert task.result == "Coder heard write a parser"
    assert task.error is None
    log = await ctx.store.get_messages(space_id)
    assert log[0] == request
    assert log[1].type is MessageType.RESPONSE
    assert log[1].source == "coder"
    assert log[1].correlation_id == request.correlation_id
    task_events = [event.type for event in events if event.type.value.startswith("task.")]
    assert task_events == [
        EventType.TASK_SUBMITTED,
        EventType.TASK_ASSIGNED,
        EventType.TASK_STARTED,
        EventType.TASK_COMPLETED,
    ]
    assert events[-1].payload.id == task.id


@pytest.mark.anyio
async def test_direct_failure_marks_task_failed(ctx: GatewayContext, events: List[Event]) -> None:
    ctx.directory.register(EchoBackend("coder", fail_with="process exited with status 1"))
    ctx.router.configure([], default_agent="coder")

    task = await ctx.tasks.process_task(Message.request("write a parser"))

    assert task.status is TaskStatus.FAILED
    assert task.error == ErrorInfo(code="EXECUTION_ERROR", message="process exited with status 1")
    assert task.result is None
    assert events[-1].type is EventType.TASK_FAILED
    assert ctx.tasks.status(task.id)["error"] == {
        "code": "EXECUTION_ERROR",
        "message": "process exited with status 1",
    }


@pytest.mark.anyio
async def test_error_response_counts_as_execution_failure(ctx: GatewayContext) -> None:
    ctx.directory.register(ErrorReplyBackend("cli", "CLI"))
    ctx.router.configure([], default_agent="cli")

    task = await ctx.tasks.process_task(Message.request("build"))

    assert task.status is TaskStatus.FAILED
    assert task.error.code == "EXECUTION_ERROR"
    assert task.error.message == "exit 2"


@pytest.mark.anyio
async def test_broadcast_isolates_agent_failures(ctx: GatewayContext) -> None:
    ctx.directory.register(EchoBackend("a", "A"))
    ctx.directory.register(EchoBackend("b", "B", fail_with="timed out"))
    ctx.router.configure([broadcast_rule("a", "b")])
    space_id = await ctx.store.create_shared_space()

    task = await ctx.tasks.process_task(Message.request("review the diff", shared_space_id=space_id))

    assert task.status is TaskStatus.COMPLETED
    assert task.result == {"a": "A heard review the diff", "b": {"error": "timed out"}}
    assert task.error is None
    sources = [message.source for message in await ctx.store.get_messages(space_id)]
    assert sources == ["api", "a"]


@pytest.mark.anyio
async def test_broadcast_completes_even_when_every_agent_fails(ctx: GatewayContext) -> None:
    ctx.directory.register(EchoBackend("a", fail_with="boom"))
    ctx.directory.register(EchoBackend("b", fail_with="bang"))

    task = await ctx.tasks.process_task(Message.request("anything"))

    assert task.status is TaskStatus.COMPLETED
    assert task.result == {"a": {"error": "boom"}, "b": {"error": "bang"}}


@pytest.mark.anyio
async def test_broadcast_appends_each_response_as_it_arrives(ctx: GatewayContext) -> None:
    slow, fast = GatedBackend("slow"), GatedBackend("fast")
    ctx.directory.register(slow)
    ctx.directory.register(fast)
    space_id = await ctx.store.create_shared_space()

    running = asyncio.create_task(ctx.tasks.process_task(Message.request("go", shared_space_id=space_id)))
    fast.release.set()
    for _ in range(50):
        if len(await ctx.store.get_messages(space_id)) == 2:
            break
        await asyncio.sleep(0.01)
    partial = [message.source for message in await ctx.store.get_messages(space_id)]
    in_flight = ctx.tasks.list_tasks()[0].status
    slow.release.set()
    task = await running

    assert partial == ["api", "fast"]
    assert in_flight is TaskStatus.RUNNING
    assert [m.source for m in await ctx.store.get_messages(space_id)] == ["api", "fast", "slow"]
    assert task.result == {"slow": "slow done", "fast": "fast done"}


@pytest.mark.anyio
async def test_no_online_agent_fails_submission(ctx: GatewayContext, events: List[Event]) -> None:
    ctx.directory.register(EchoBackend("coder"), status=AgentStatus.OFFLINE)

    with pytest.raises(NoAgentAvailableError) as excinfo:
        await ctx.tasks.process_task(Message.request("write code"))

    task = excinfo.value.task
    assert task.status is TaskStatus.FAILED
    assert task.error.code == "NO_AGENT_AVAILABLE"
    assert task.assigned_agents == []
    assert [event.type for event in events][-2:] == [EventType.TASK_SUBMITTED, EventType.TASK_FAILED]


@pytest.mark.anyio
async def test_request_is_recorded_even_when_unroutable(ctx: GatewayContext) -> None:
    space_id = await ctx.store.create_shared_space()
    request = Message.request("hello", shared_space_id=space_id)

    with pytest.raises(NoAgentAvailableError):
        await ctx.tasks.process_task(request)

    assert await ctx.store.get_messages(space_id) == [request]


@pytest.mark.anyio
async def test_unknown_space_reference_does_not_fail_task(ctx: GatewayContext) -> None:
    ctx.directory.register(EchoBackend("coder"))

    task = await ctx.tasks.process_task(Message.request("hello", shared_space_id="does-not-exist"))

    assert task.status is TaskStatus.COMPLETED


@pytest.mark.anyio
async def test_unregistered_direct_target_fails_with_agent_not_found(ctx: GatewayContext) -> None:
    task = ctx.tasks.create_task(Message.request("hello"))
    ctx.tasks.assign_task(task.id, ["ghost"])
    ctx.tasks.start_task(task.id)

    await ctx.tasks.execute_task(task, ["ghost"], Strategy.DIRECT)

    assert task.status is TaskStatus.FAILED
    assert task.error.code == "AGENT_NOT_FOUND"


@pytest.mark.anyio
async def test_unregistered_broadcast_target_is_reported_per_agent(ctx: GatewayContext) -> None:
    ctx.directory.register(EchoBackend("a", "A"))
    task = ctx.tasks.create_task(Message.request("hello"))
    ctx.tasks.assign_task(task.id, ["a", "ghost"])
    ctx.tasks.start_task(task.id)

    await ctx.tasks.execute_task(task, ["a", "ghost"], Strategy.BROADCAST)

    assert task.status is TaskStatus.COMPLETED
    assert task.result == {"a": "A heard hello", "ghost": {"error": "Agent ghost not found"}}


def test_terminal_tasks_never_change(ctx: GatewayContext) -> None:
    task = ctx.tasks.create_task(Message.request("hello"))
    ctx.tasks.assign_task(task.id, ["a"])
    ctx.tasks.start_task(task.id)
    ctx.tasks.complete_task(task.id, "done")
    updated_at = task.updated_at

    with pytest.raises(InvalidTransitionError):
        ctx.tasks.fail_task(task.id, ErrorInfo(code="EXECUTION_ERROR", message="late"))
    with pytest.raises(InvalidTransitionError):
        ctx.tasks.start_task(task.id)

    assert task.status is TaskStatus.COMPLETED
    assert task.result == "done"
    assert task.error is None
    assert task.updated_at == updated_at


def test_transitions_must_follow_lifecycle_order(ctx: GatewayContext) -> None:
    task = ctx.tasks.create_task(Message.request("hello"))

    with pytest.raises(InvalidTransitionError):
        ctx.tasks.start_task(task.id)
    with pytest.raises(InvalidTransitionError):
        ctx.tasks.complete_task(task.id, "skipped")
    assert task.status is TaskStatus.PENDING

    ctx.tasks.fail_task(task.id, ErrorInfo(code="NO_AGENT_AVAILABLE", message="none"))
    assert task.status is TaskStatus.FAILED


def test_status_query_shape(ctx: GatewayContext) -> None:
    task = ctx.tasks.create_task(Message.request("hello"))
    ctx.tasks.assign_task(task.id, ["a", "b"])

    status = ctx.tasks.status(task.id)

    assert status == {
        "id": task.id,
        "status": "assigned",
        "assigned_agents": ["a", "b"],
        "result": None,
        "error": None,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }
    with pytest.raises(TaskNotFoundError):
        ctx.tasks.status("missing")
