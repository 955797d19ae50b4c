"""Task lifecycle orchestration: state machine plus direct/broadcast execution."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import structlog

from agent_gateway.core.errors import (
    AgentNotFoundError,
    ExecutionError,
    InvalidTransitionError,
    NoAgentAvailableError,
    TaskNotFoundError,
)
from agent_gateway.core.event_bus import EventBus, EventType
from agent_gateway.core.models import ErrorInfo, Message, Strategy, Task, TaskStatus, new_id, now_ms
from agent_gateway.core.routing import Router
from agent_gateway.orchestration.directory import AgentDirectory
from agent_gateway.storage.context_store import ContextStore

logger = structlog.get_logger(__name__)

_TRANSITIONS: Dict[TaskStatus, frozenset] = {
    TaskStatus.PENDING: frozenset({TaskStatus.ASSIGNED, TaskStatus.FAILED}),
    TaskStatus.ASSIGNED: frozenset({TaskStatus.RUNNING}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}

_STATUS_EVENTS: Dict[TaskStatus, EventType] = {
    TaskStatus.ASSIGNED: EventType.TASK_ASSIGNED,
    TaskStatus.RUNNING: EventType.TASK_STARTED,
    TaskStatus.COMPLETED: EventType.TASK_COMPLETED,
    TaskStatus.FAILED: EventType.TASK_FAILED,
}


class TaskManager:
    """Owns every task record and drives it through its lifecycle.

    Each primitive transition stores the new state and publishes exactly one
    lifecycle event. Transitions outside ``pending -> assigned -> running ->
    completed|failed`` (or ``pending -> failed``) raise
    ``InvalidTransitionError`` and leave the task untouched, so terminal
    tasks never change again.

    The task table is never pruned.
    """

    def __init__(
        self,
        *,
        directory: AgentDirectory,
        router: Router,
        store: ContextStore,
        bus: EventBus,
    ) -> None:
        self._directory = directory
        self._router = router
        self._store = store
        self._bus = bus
        self._tasks: Dict[str, Task] = {}

    # -- queries -----------------------------------------------------------

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def list_tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def status(self, task_id: str) -> Dict[str, Any]:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task.to_status_dict()

    # -- primitive transitions ---------------------------------------------

    def create_task(self, request: Message) -> Task:
        task = Task(id=new_id(), request=request)
        self._tasks[task.id] = task
        logger.info("task.created", task_id=task.id, source=request.source)
        self._publish(EventType.TASK_SUBMITTED, task)
        return task

    def assign_task(self, task_id: str, agent_ids: Iterable[str]) -> Task:
        return self._advance(task_id, TaskStatus.ASSIGNED, assigned_agents=list(agent_ids))

    def start_task(self, task_id: str) -> Task:
        return self._advance(task_id, TaskStatus.RUNNING)

    def complete_task(self, task_id: str, result: Any) -> Task:
        return self._advance(task_id, TaskStatus.COMPLETED, result=result)

    def fail_task(self, task_id: str, error: ErrorInfo) -> Task:
        return self._advance(task_id, TaskStatus.FAILED, error=error)

    def _advance(self, task_id: str, target: TaskStatus, **changes: Any) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if target not in _TRANSITIONS[task.status]:
            raise InvalidTransitionError(task_id, task.status, target)
        for name, value in changes.items():
            setattr(task, name, value)
        task.status = target
        task.updated_at = max(now_ms(), task.updated_at)
        logger.info("task.transitioned", task_id=task.id, status=target.value)
        self._publish(_STATUS_EVENTS[target], task)
        return task

    def _publish(self, event_type: EventType, task: Task) -> None:
        self._bus.publish(
            event_type,
            task.request.evolve(
                id=task.id,
                result=task.result,
                error=task.error,
                event_type=event_type.value,
            ),
        )

    # -- orchestration -----------------------------------------------------

    async def process_task(self, message: Message) -> Task:
        """Create, route and execute a task for an inbound request.

        Raises ``NoAgentAvailableError`` (after failing the task) when routing
        yields no target. Every other failure is recorded on the task.
        """
        task = self.create_task(message)

        space_id = message.shared_space_id
        if space_id:
            # Recorded before routing so the request precedes every response.
            await self._append_to_space(space_id, message, task.id)

        agent_ids, strategy = self._router.route(message.task_text, self._directory.snapshot())
        if not agent_ids:
            error = NoAgentAvailableError(task)
            self.fail_task(task.id, error.to_error_info())
            logger.warning("task.unroutable", task_id=task.id)
            raise error

        self.assign_task(task.id, agent_ids)
        self.start_task(task.id)
        await self.execute_task(task, agent_ids, strategy)
        return task

    async def execute_task(self, task: Task, agent_ids: List[str], strategy: Strategy) -> None:
        if strategy == Strategy.DIRECT and agent_ids:
            await self._execute_direct(task, agent_ids[0])
        else:
            await self._execute_broadcast(task, agent_ids)

    async def _execute_direct(self, task: Task, agent_id: str) -> None:
        backend = self._directory.get(agent_id)
        if backend is None:
            self.fail_task(task.id, AgentNotFoundError(agent_id).to_error_info())
            return

        logger.info("task.executing", task_id=task.id, agent_id=agent_id, strategy="direct")
        try:
            response = await self._invoke(agent_id, task.request)
        except Exception as exc:  # noqa: BLE001
            logger.warning("task.execution_failed", task_id=task.id, agent_id=agent_id, error=str(exc))
            self.fail_task(task.id, ErrorInfo(code=ExecutionError.code.value, message=str(exc)))
            return

        if task.request.shared_space_id:
            await self._append_to_space(task.request.shared_space_id, response, task.id)
        self.complete_task(task.id, response.result)

    async def _execute_broadcast(self, task: Task, agent_ids: List[str]) -> None:
        """Fan out to every target; per-agent failures never fail the task."""
        logger.info("task.executing", task_id=task.id, agents=agent_ids, strategy="broadcast")
        outcomes = await asyncio.gather(
            *(self._broadcast_one(task, agent_id) for agent_id in agent_ids)
        )
        results: Dict[str, Any] = dict(zip(agent_ids, outcomes))
        self.complete_task(task.id, results)

    async def _broadcast_one(self, task: Task, agent_id: str) -> Any:
        if self._directory.get(agent_id) is None:
            return {"error": AgentNotFoundError(agent_id).message}
        try:
            response = await self._invoke(agent_id, task.request)
        except Exception as exc:  # noqa: BLE001
            logger.warning("task.agent_failed", task_id=task.id, agent_id=agent_id, error=str(exc))
            return {"error": str(exc)}
        if task.request.shared_space_id:
            await self._append_to_space(task.request.shared_space_id, response, task.id)
        return response.result

    async def _invoke(self, agent_id: str, request: Message) -> Message:
        backend = self._directory.get(agent_id)
        if backend is None:
            raise AgentNotFoundError(agent_id)
        response = await backend.invoke(request)
        if response.error is not None:
            raise ExecutionError(response.error.message)
        return response

    async def _append_to_space(self, space_id: str, message: Message, task_id: str) -> None:
        try:
            await self._store.add_message(space_id, message)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "task.context_append_failed",
                task_id=task_id,
                space_id=space_id,
                message_id=message.id,
                error=str(exc),
            )
