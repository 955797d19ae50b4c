"""Directory of registered backends and their availability."""
from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Dict, List, Optional

import structlog

from agent_gateway.agents.base import AgentBackend
from agent_gateway.core.errors import AgentNotFoundError
from agent_gateway.core.event_bus import EventBus, EventType
from agent_gateway.core.models import AgentDescriptor, AgentStatus, Message, MessageType, new_id, now_ms

logger = structlog.get_logger(__name__)


class AgentDirectory:
    """Registry mapping agent ids to backends plus their last known status.

    Consumers only read from it: the router gets descriptor snapshots and the
    task manager resolves backends by id at execution time.
    """

    def __init__(self, bus: Optional[EventBus] = None) -> None:
        self._bus = bus
        self._backends: Dict[str, AgentBackend] = {}
        self._descriptors: Dict[str, AgentDescriptor] = {}

    def register(self, backend: AgentBackend, status: AgentStatus = AgentStatus.ONLINE) -> AgentDescriptor:
        descriptor = AgentDescriptor(
            agent_id=backend.agent_id,
            name=backend.name,
            capabilities=backend.capabilities,
            status=status,
            kind=backend.kind,
        )
        self._backends[backend.agent_id] = backend
        self._descriptors[backend.agent_id] = descriptor
        logger.info("directory.registered", agent_id=backend.agent_id, kind=backend.kind)
        self._announce(EventType.AGENT_REGISTERED, backend.agent_id)
        return replace(descriptor)

    def unregister(self, agent_id: str) -> None:
        backend = self._backends.pop(agent_id, None)
        self._descriptors.pop(agent_id, None)
        if backend is None:
            return
        logger.info("directory.unregistered", agent_id=agent_id)
        self._announce(EventType.AGENT_UNREGISTERED, agent_id)

    def get(self, agent_id: str) -> Optional[AgentBackend]:
        return self._backends.get(agent_id)

    def describe(self, agent_id: str) -> Optional[AgentDescriptor]:
        descriptor = self._descriptors.get(agent_id)
        return replace(descriptor) if descriptor else None

    def set_status(self, agent_id: str, status: AgentStatus) -> AgentDescriptor:
        descriptor = self._descriptors.get(agent_id)
        if descriptor is None:
            raise AgentNotFoundError(agent_id)
        descriptor.status = AgentStatus(status)
        descriptor.last_seen = now_ms()
        return replace(descriptor)

    def snapshot(self) -> List[AgentDescriptor]:
        """Copies of every descriptor, in registration order."""
        return [replace(descriptor) for descriptor in self._descriptors.values()]

    def online_ids(self) -> List[str]:
        return [d.agent_id for d in self._descriptors.values() if d.is_online]

    def find_by_capability(self, capability: str) -> List[AgentDescriptor]:
        return [replace(d) for d in self._descriptors.values() if capability in d.capabilities]

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._backends

    def __len__(self) -> int:
        return len(self._backends)

    async def refresh_health(self) -> Dict[str, bool]:
        """Probe every backend once and mark it online or offline."""
        backends = list(self._backends.values())
        outcomes = await asyncio.gather(
            *(backend.health() for backend in backends), return_exceptions=True
        )
        results: Dict[str, bool] = {}
        for backend, outcome in zip(backends, outcomes):
            healthy = outcome is True
            if isinstance(outcome, BaseException):
                logger.warning("directory.health_failed", agent_id=backend.agent_id, error=str(outcome))
            results[backend.agent_id] = healthy
            if backend.agent_id in self._descriptors:
                self.set_status(backend.agent_id, AgentStatus.ONLINE if healthy else AgentStatus.OFFLINE)
        return results

    def _announce(self, event_type: EventType, agent_id: str) -> None:
        if self._bus is None:
            return
        self._bus.publish(
            event_type,
            Message(
                id=new_id(),
                type=MessageType.EVENT,
                source="directory",
                target="*",
                correlation_id=agent_id,
                timestamp=now_ms(),
                event_type=event_type.value,
                result={"agent_id": agent_id},
            ),
        )
