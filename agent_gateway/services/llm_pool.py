"""LLM client pool shared by LLM-backed agents, with concurrency limits."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

import structlog
from openai import AsyncAzureOpenAI

from agent_gateway.config import AzureOpenAIConfig

logger = structlog.get_logger(__name__)


class LLMPool:
    """Lazily builds one async client per deployment and caps in-flight calls."""

    def __init__(self) -> None:
        self._configs: Dict[str, AzureOpenAIConfig] = {}
        self._clients: Dict[str, Any] = {}
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

    def register_azure_openai(self, name: str, config: AzureOpenAIConfig) -> None:
        """Register an Azure OpenAI deployment under ``name``."""
        self._configs[name] = config
        self._clients.pop(name, None)
        self._semaphores[name] = asyncio.Semaphore(config.max_concurrent)

    def register_client(self, name: str, client: Any, max_concurrent: int = 8) -> None:
        """Register a ready-made client (any object exposing ``chat.completions``)."""
        self._clients[name] = client
        self._semaphores[name] = asyncio.Semaphore(max_concurrent)

    def models(self) -> List[str]:
        return sorted(self._semaphores)

    def __contains__(self, model_name: str) -> bool:
        return model_name in self._semaphores

    @asynccontextmanager
    async def acquire(self, model_name: str) -> AsyncIterator[Any]:
        """Acquire a model client, waiting while the deployment is saturated."""
        if model_name not in self._semaphores:
            raise KeyError(f"Model '{model_name}' not registered in LLM pool")

        async with self._semaphores[model_name]:
            yield self._client_for(model_name)

    def _client_for(self, model_name: str) -> Any:
        client = self._clients.get(model_name)
        if client is None:
            config = self._configs[model_name]
            client = AsyncAzureOpenAI(
                api_key=config.api_key,
                api_version=config.api_version,
                azure_endpoint=config.endpoint,
            )
            self._clients[model_name] = client
            logger.info("llm_pool.client_created", model=model_name, endpoint=config.endpoint)
        return client
