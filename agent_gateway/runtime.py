"""Application runtime composition helpers."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import structlog

from agent_gateway.agents.echo import EchoBackend
from agent_gateway.agents.llm_agent import LLMBackend
from agent_gateway.agents.process import ProcessBackend
from agent_gateway.config import Config
from agent_gateway.core.event_bus import EventBus
from agent_gateway.core.routing import Router
from agent_gateway.orchestration.directory import AgentDirectory
from agent_gateway.orchestration.task_manager import TaskManager
from agent_gateway.services.llm_pool import LLMPool
from agent_gateway.storage.context_store import ContextStore
from agent_gateway.storage.index import KeywordIndex, SimilarityIndex
from agent_gateway.storage.snapshot import FileSnapshotStore, SnapshotStore

logger = structlog.get_logger(__name__)

LLM_AGENT_ID = "llm"


@dataclass
class GatewayContext:
    """Every long-lived collaborator of one gateway instance."""

    config: Config
    bus: EventBus
    directory: AgentDirectory
    router: Router
    store: ContextStore
    tasks: TaskManager
    llm_pool: LLMPool


def build_context(
    config: Config,
    *,
    snapshots: Optional[SnapshotStore] = None,
    index: Optional[SimilarityIndex] = None,
) -> GatewayContext:
    """Wire a fresh, fully independent set of gateway components."""
    bus = EventBus()
    directory = AgentDirectory(bus)
    router = Router()
    router.configure(config.routing_rules, config.default_agent)

    if index is None and config.enable_index:
        index = KeywordIndex()
    store = ContextStore(snapshots or FileSnapshotStore(config.data_dir), index=index, bus=bus)

    llm_pool = LLMPool()
    if config.azure_openai:
        llm_pool.register_azure_openai(config.azure_openai.deployment_name, config.azure_openai)
        directory.register(
            LLMBackend(LLM_AGENT_ID, llm_pool, name="Azure OpenAI", model=config.azure_openai.deployment_name)
        )

    for settings in config.process_agents:
        directory.register(
            ProcessBackend(
                settings.id,
                settings.command,
                name=settings.name,
                args=settings.args,
                env=settings.env,
                capabilities=settings.capabilities,
                timeout=settings.timeout,
            )
        )

    for agent_id in config.echo_agents:
        directory.register(EchoBackend(agent_id))

    tasks = TaskManager(directory=directory, router=router, store=store, bus=bus)
    logger.info("runtime.context_built", agents=[d.agent_id for d in directory.snapshot()])
    return GatewayContext(
        config=config,
        bus=bus,
        directory=directory,
        router=router,
        store=store,
        tasks=tasks,
        llm_pool=llm_pool,
    )


@lru_cache
def get_config() -> Config:
    return Config.from_env()


@lru_cache
def get_context() -> GatewayContext:
    """Process-wide context used by the HTTP layer only."""
    return build_context(get_config())
