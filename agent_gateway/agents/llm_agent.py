"""Backend that answers tasks with a chat completion."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Sequence

import structlog

from agent_gateway.agents.base import AgentBackend
from agent_gateway.core.errors import ExecutionError
from agent_gateway.core.models import Message

if TYPE_CHECKING:
    from agent_gateway.services.llm_pool import LLMPool

logger = structlog.get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant agent in a multi-agent system."


class LLMBackend(AgentBackend):
    """Agent that forwards the task text to a pooled LLM deployment."""

    kind = "llm"

    def __init__(
        self,
        agent_id: str,
        llm_pool: LLMPool,
        *,
        name: str = "",
        model: str = "gpt-4",
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        temperature: float = 0.7,
        capabilities: Sequence[str] = ("conversation", "reasoning"),
    ) -> None:
        super().__init__(agent_id, name or agent_id, capabilities)
        self._llm_pool = llm_pool
        self.model_name = model
        self.system_prompt = system_prompt
        self.temperature = temperature

    def _build_messages(self, request: Message) -> List[Dict[str, Any]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": request.task_text},
        ]

    async def invoke(self, request: Message) -> Message:
        """Run one completion; provider errors surface as ``ExecutionError``."""
        if not request.task_text:
            raise ExecutionError("Empty task text")

        try:
            async with self._llm_pool.acquire(self.model_name) as client:
                response = await client.chat.completions.create(
                    model=self.model_name,
                    messages=self._build_messages(request),
                    temperature=self.temperature,
                )
        except Exception as exc:  # noqa: BLE001
            logger.warning("llm_backend.invoke_failed", agent_id=self.agent_id, error=str(exc))
            raise ExecutionError(str(exc)) from exc

        content = response.choices[0].message.content
        return request.reply(self.agent_id, result=content)

    async def health(self) -> bool:
        return self.model_name in self._llm_pool
