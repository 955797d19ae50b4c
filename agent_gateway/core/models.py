"""Core data models shared across gateway components."""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


class MessageType(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    EVENT = "event"
    STREAM = "stream"
    STREAM_END = "stream_end"


class TaskStatus(str, Enum):
    """Lifecycle states for a task owned by the task manager."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Strategy(str, Enum):
    DIRECT = "direct"
    BROADCAST = "broadcast"


class AgentStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BUSY = "busy"


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional[ErrorInfo]:
        if not data:
            return None
        return cls(code=str(data.get("code", "")), message=str(data.get("message", "")))


@dataclass(frozen=True, slots=True)
class ContextRef:
    """Reference from a request to the shared space carrying its history."""

    shared_space_id: str
    history: Tuple[str, ...] = ()
    artifacts: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"shared_space_id": self.shared_space_id}
        if self.history:
            data["history"] = list(self.history)
        if self.artifacts:
            data["artifacts"] = list(self.artifacts)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional[ContextRef]:
        if not data or not data.get("shared_space_id"):
            return None
        return cls(
            shared_space_id=str(data["shared_space_id"]),
            history=tuple(data.get("history") or ()),
            artifacts=tuple(data.get("artifacts") or ()),
        )


@dataclass(frozen=True, slots=True)
class Payload:
    task: str = ""
    context: Optional[ContextRef] = None
    files: Tuple[str, ...] = ()
    options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"task": self.task}
        if self.context is not None:
            data["context"] = self.context.to_dict()
        if self.files:
            data["files"] = list(self.files)
        if self.options:
            data["options"] = dict(self.options)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Payload:
        if not data:
            return cls()
        return cls(
            task=str(data.get("task") or ""),
            context=ContextRef.from_dict(data.get("context")),
            files=tuple(data.get("files") or ()),
            options=dict(data.get("options") or {}),
        )


@dataclass(frozen=True, slots=True)
class Message:
    """Canonical message exchanged between the gateway and its backends.

    Messages are never mutated; a backend produces a new message for every
    response and the task manager derives event payloads with ``replace``.
    """

    id: str
    type: MessageType
    source: str
    target: str
    correlation_id: str
    timestamp: int
    payload: Payload = field(default_factory=Payload)
    result: Any = None
    error: Optional[ErrorInfo] = None
    event_type: Optional[str] = None

    @classmethod
    def request(
        cls,
        task: str,
        *,
        source: str = "api",
        target: str = "gateway",
        shared_space_id: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        files: Tuple[str, ...] = (),
        correlation_id: Optional[str] = None,
    ) -> Message:
        context = ContextRef(shared_space_id) if shared_space_id else None
        return cls(
            id=new_id(),
            type=MessageType.REQUEST,
            source=source,
            target=target,
            correlation_id=correlation_id or new_id(),
            timestamp=now_ms(),
            payload=Payload(task=task, context=context, files=files, options=options or {}),
        )

    def reply(
        self,
        source: str,
        *,
        result: Any = None,
        error: Optional[ErrorInfo] = None,
        message_type: MessageType = MessageType.RESPONSE,
    ) -> Message:
        """Build the response message a backend sends back for this request."""
        return Message(
            id=new_id(),
            type=message_type,
            source=source,
            target=self.source,
            correlation_id=self.correlation_id or new_id(),
            timestamp=now_ms(),
            result=result,
            error=error,
        )

    @property
    def task_text(self) -> str:
        return self.payload.task

    @property
    def shared_space_id(self) -> Optional[str]:
        context = self.payload.context
        return context.shared_space_id if context else None

    def evolve(self, **changes: Any) -> Message:
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "source": self.source,
            "target": self.target,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp,
            "payload": self.payload.to_dict(),
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error.to_dict()
        if self.event_type is not None:
            data["event_type"] = self.event_type
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Message:
        return cls(
            id=str(data["id"]),
            type=MessageType(data.get("type", MessageType.REQUEST.value)),
            source=str(data.get("source", "")),
            target=str(data.get("target", "")),
            correlation_id=str(data.get("correlation_id", "")),
            timestamp=int(data.get("timestamp", 0)),
            payload=Payload.from_dict(data.get("payload")),
            result=data.get("result"),
            error=ErrorInfo.from_dict(data.get("error")),
            event_type=data.get("event_type"),
        )


@dataclass(slots=True)
class Task:
    """Task record owned and mutated exclusively by the task manager."""

    id: str
    request: Message
    status: TaskStatus = TaskStatus.PENDING
    assigned_agents: List[str] = field(default_factory=list)
    result: Any = None
    error: Optional[ErrorInfo] = None
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    def to_status_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "assigned_agents": list(self.assigned_agents),
            "result": self.result,
            "error": self.error.to_dict() if self.error else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True, slots=True)
class RoutingRule:
    """Keyword-triggered mapping from task text to a backend or backend set."""

    name: str
    keywords: Tuple[str, ...]
    priority: int = 0
    strategy: Strategy = Strategy.DIRECT
    agent: Optional[str] = None
    agents: Tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords if keyword)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RoutingRule:
        return cls(
            name=str(data["name"]),
            keywords=tuple(data.get("keywords") or ()),
            priority=int(data.get("priority", 0)),
            strategy=Strategy(data.get("strategy") or Strategy.DIRECT.value),
            agent=data.get("agent"),
            agents=tuple(data.get("agents") or ()),
        )


@dataclass(slots=True)
class AgentDescriptor:
    """Directory view of a registered backend."""

    agent_id: str
    name: str
    capabilities: Tuple[str, ...] = ()
    status: AgentStatus = AgentStatus.ONLINE
    last_seen: int = field(default_factory=now_ms)
    kind: str = "process"

    @property
    def is_online(self) -> bool:
        return self.status is AgentStatus.ONLINE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.agent_id,
            "name": self.name,
            "type": self.kind,
            "capabilities": list(self.capabilities),
            "status": self.status.value,
            "last_seen": self.last_seen,
        }


@dataclass(slots=True)
class SharedSpace:
    """Shared conversation state carried across task dispatches."""

    id: str
    messages: List[Message] = field(default_factory=list)
    artifacts: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    def touch(self) -> None:
        self.updated_at = max(now_ms(), self.updated_at)

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "message_count": len(self.messages),
            "artifact_count": len(self.artifacts),
            "metadata": dict(self.metadata),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "messages": [message.to_dict() for message in self.messages],
            "artifacts": dict(self.artifacts),
            "metadata": dict(self.metadata),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> SharedSpace:
        return cls(
            id=str(data["id"]),
            messages=[Message.from_dict(item) for item in data.get("messages") or []],
            artifacts={str(k): str(v) for k, v in (data.get("artifacts") or {}).items()},
            metadata=dict(data.get("metadata") or {}),
            created_at=int(data.get("created_at", 0)),
            updated_at=int(data.get("updated_at", 0)),
        )
