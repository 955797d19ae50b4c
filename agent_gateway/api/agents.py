"""HTTP API exposing the agent directory."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agent_gateway.core.errors import AgentNotFoundError
from agent_gateway.core.models import AgentDescriptor, AgentStatus
from agent_gateway.runtime import GatewayContext, get_context

router = APIRouter(prefix="/agents", tags=["agents"])


class AgentResponse(BaseModel):
    agent_id: str
    name: str
    kind: str
    capabilities: List[str]
    status: str
    last_seen: int

    @classmethod
    def from_descriptor(cls, descriptor: AgentDescriptor) -> "AgentResponse":
        return cls(
            agent_id=descriptor.agent_id,
            name=descriptor.name,
            kind=descriptor.kind,
            capabilities=list(descriptor.capabilities),
            status=descriptor.status.value,
            last_seen=descriptor.last_seen,
        )


class StatusUpdateRequest(BaseModel):
    status: AgentStatus = Field(..., description="New availability of the agent")


@router.get("", response_model=List[AgentResponse])
async def list_agents(ctx: GatewayContext = Depends(get_context)) -> List[AgentResponse]:
    return [AgentResponse.from_descriptor(desc) for desc in ctx.directory.snapshot()]


@router.patch("/{agent_id}", response_model=AgentResponse)
async def update_agent_status(
    agent_id: str,
    request: StatusUpdateRequest,
    ctx: GatewayContext = Depends(get_context),
) -> AgentResponse:
    try:
        descriptor = ctx.directory.set_status(agent_id, request.status)
    except AgentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown agent") from exc
    return AgentResponse.from_descriptor(descriptor)


@router.post("/health", response_model=List[AgentResponse])
async def refresh_health(ctx: GatewayContext = Depends(get_context)) -> List[AgentResponse]:
    """Probe every backend once and return the updated directory."""
    await ctx.directory.refresh_health()
    return [AgentResponse.from_descriptor(desc) for desc in ctx.directory.snapshot()]
