"""Simple backend used by the demo and the test-suite."""
from __future__ import annotations

import asyncio
from typing import List, Sequence

from agent_gateway.agents.base import AgentBackend
from agent_gateway.core.errors import ExecutionError
from agent_gateway.core.models import Message


class EchoBackend(AgentBackend):
    """Backend that echoes the task text back after an optional delay."""

    kind = "echo"

    def __init__(
        self,
        agent_id: str,
        name: str = "",
        capabilities: Sequence[str] = ("echo",),
        *,
        delay: float = 0.0,
        fail_with: str = "",
    ) -> None:
        super().__init__(agent_id, name or agent_id, capabilities)
        self.delay = delay
        self.fail_with = fail_with
        self.requests: List[Message] = []

    async def invoke(self, request: Message) -> Message:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)  # Simulate work
        if self.fail_with:
            raise ExecutionError(self.fail_with)
        return request.reply(self.agent_id, result=f"{self.name} heard {request.task_text}")

    async def health(self) -> bool:
        return not self.fail_with
