"""Shared fixtures for the gateway test-suite."""
from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from agent_gateway.config import Config
from agent_gateway.core.event_bus import Event, EventBus
from agent_gateway.runtime import GatewayContext, build_context
from agent_gateway.storage.context_store import ContextStore
from agent_gateway.storage.index import KeywordIndex
from agent_gateway.storage.snapshot import FileSnapshotStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "spaces"


@pytest.fixture
def store(data_dir: Path, bus: EventBus) -> ContextStore:
    return ContextStore(FileSnapshotStore(data_dir), index=KeywordIndex(), bus=bus)


@pytest.fixture
def ctx(data_dir: Path) -> GatewayContext:
    return build_context(Config(data_dir=str(data_dir)))


@pytest.fixture
def events(ctx: GatewayContext) -> List[Event]:
    """Every event published on the context's bus, in publish order."""
    received: List[Event] = []
    for event_type in ctx.bus.event_types():
        ctx.bus.subscribe(event_type, received.append)
    return received
