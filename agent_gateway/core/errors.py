"""Error taxonomy surfaced by the gateway core."""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

from .models import ErrorInfo

if TYPE_CHECKING:
    from .models import Task, TaskStatus


class ErrorCode(str, Enum):
    NO_AGENT_AVAILABLE = "NO_AGENT_AVAILABLE"
    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    SPACE_NOT_FOUND = "SPACE_NOT_FOUND"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"


class GatewayError(Exception):
    """Base class for errors carrying a stable error code."""

    code: ErrorCode = ErrorCode.EXECUTION_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(code=self.code.value, message=self.message)


class NoAgentAvailableError(GatewayError):
    """Routing produced no target; the whole submission fails."""

    code = ErrorCode.NO_AGENT_AVAILABLE

    def __init__(self, task: Optional[Task] = None) -> None:
        super().__init__("No available agents to handle this task")
        self.task = task


class AgentNotFoundError(GatewayError, KeyError):
    code = ErrorCode.AGENT_NOT_FOUND

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent {agent_id} not found")
        self.agent_id = agent_id


class ExecutionError(GatewayError):
    """A backend invocation failed (timeout, exit status, transport error)."""

    code = ErrorCode.EXECUTION_ERROR


class SpaceNotFoundError(GatewayError, KeyError):
    code = ErrorCode.SPACE_NOT_FOUND

    def __init__(self, space_id: str) -> None:
        super().__init__(f"Shared space not found: {space_id}")
        self.space_id = space_id


class TaskNotFoundError(GatewayError, KeyError):
    code = ErrorCode.TASK_NOT_FOUND

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class InvalidTransitionError(GatewayError):
    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, task_id: str, current: TaskStatus, target: TaskStatus) -> None:
        super().__init__(
            f"Task {task_id} cannot move from {current.value} to {target.value}"
        )
        self.task_id = task_id
        self.current = current
        self.target = target
