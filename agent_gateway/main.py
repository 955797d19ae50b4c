"""FastAPI entry-point exposing the gateway."""
from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI

from agent_gateway.api.agents import router as agents_router
from agent_gateway.api.spaces import router as spaces_router
from agent_gateway.api.tasks import router as tasks_router
from agent_gateway.observability import configure_logging
from agent_gateway.runtime import GatewayContext, get_config, get_context

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    configure_logging(get_config())
    ctx = get_context()
    health = await ctx.directory.refresh_health()
    logger.info("gateway.started", agents=health)
    yield
    # Let background index writes settle before the loop goes away.
    await ctx.store.drain()
    logger.info("gateway.stopped")


app = FastAPI(title="Agent Gateway", lifespan=lifespan)
app.include_router(tasks_router)
app.include_router(spaces_router)
app.include_router(agents_router)


@app.get("/health")
async def health(ctx: GatewayContext = Depends(get_context)) -> dict:
    return {
        "status": "ok",
        "agents": [descriptor.to_dict() for descriptor in ctx.directory.snapshot()],
    }
