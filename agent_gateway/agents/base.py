"""Base backend definition consumed by the agent directory."""
from __future__ import annotations

import abc
from typing import AsyncIterator, Sequence, Tuple

from agent_gateway.core.models import Message, MessageType


class AgentBackend(abc.ABC):
    """Abstract execution backend the task manager dispatches work to.

    Concrete transports (local CLI process, LLM client, HTTP service) only
    implement ``invoke`` and ``health``. Any failure they raise is treated by
    the core as an invocation failure, whatever its cause.
    """

    kind: str = "process"

    def __init__(self, agent_id: str, name: str, capabilities: Sequence[str] = ()) -> None:
        self._agent_id = agent_id
        self._name = name
        self._capabilities: Tuple[str, ...] = tuple(capabilities)

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def name(self) -> str:
        return self._name

    @property
    def capabilities(self) -> Tuple[str, ...]:
        return self._capabilities

    @abc.abstractmethod
    async def invoke(self, request: Message) -> Message:
        """Execute ``request`` and return the response message."""

    async def invoke_stream(self, request: Message) -> AsyncIterator[Message]:
        """Stream partial responses; by default a single ``stream_end`` chunk."""
        response = await self.invoke(request)
        yield response.evolve(type=MessageType.STREAM_END)

    @abc.abstractmethod
    async def health(self) -> bool:
        """Return whether the backend can currently accept work."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(agent_id={self._agent_id!r})"
