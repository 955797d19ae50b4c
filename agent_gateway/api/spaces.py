"""HTTP API for shared conversation spaces."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from agent_gateway.core.errors import SpaceNotFoundError
from agent_gateway.runtime import GatewayContext, get_context

router = APIRouter(prefix="/spaces", tags=["spaces"])


class SpaceCreateRequest(BaseModel):
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SpaceResponse(BaseModel):
    id: str
    message_count: int
    artifact_count: int
    metadata: Dict[str, Any]
    created_at: int
    updated_at: int


class ArtifactRequest(BaseModel):
    content: str


class ArtifactResponse(BaseModel):
    filename: str
    content: Optional[str] = None
    location: Optional[str] = None


def _space_not_found(space_id: str) -> HTTPException:
    error = SpaceNotFoundError(space_id)
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": error.code.value, "message": error.message},
    )


@router.post("", response_model=SpaceResponse, status_code=status.HTTP_201_CREATED)
async def create_space(
    request: SpaceCreateRequest,
    ctx: GatewayContext = Depends(get_context),
) -> SpaceResponse:
    space_id = await ctx.store.create_shared_space(request.metadata)
    space = await ctx.store.get_shared_space(space_id)
    return SpaceResponse(**space.summary())


@router.get("/{space_id}", response_model=SpaceResponse)
async def get_space(space_id: str, ctx: GatewayContext = Depends(get_context)) -> SpaceResponse:
    space = await ctx.store.get_shared_space(space_id)
    if space is None:
        raise _space_not_found(space_id)
    return SpaceResponse(**space.summary())


@router.delete("/{space_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_space(space_id: str, ctx: GatewayContext = Depends(get_context)) -> None:
    if not await ctx.store.delete_shared_space(space_id):
        raise _space_not_found(space_id)


@router.get("/{space_id}/messages")
async def list_messages(
    space_id: str,
    limit: Optional[int] = Query(None, ge=1),
    ctx: GatewayContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    if await ctx.store.get_shared_space(space_id) is None:
        raise _space_not_found(space_id)
    return [message.to_dict() for message in await ctx.store.get_messages(space_id, limit)]


@router.get("/{space_id}/search")
async def search_messages(
    space_id: str,
    q: str = Query(..., min_length=1),
    limit: int = Query(5, ge=1, le=50),
    ctx: GatewayContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    if await ctx.store.get_shared_space(space_id) is None:
        raise _space_not_found(space_id)
    return [message.to_dict() for message in await ctx.store.search_similar(space_id, q, limit)]


@router.put(
    "/{space_id}/artifacts/{filename}",
    response_model=ArtifactResponse,
    status_code=status.HTTP_201_CREATED,
)
async def put_artifact(
    space_id: str,
    filename: str,
    request: ArtifactRequest,
    ctx: GatewayContext = Depends(get_context),
) -> ArtifactResponse:
    try:
        location = await ctx.store.add_artifact(space_id, filename, request.content)
    except SpaceNotFoundError as exc:
        raise _space_not_found(space_id) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ArtifactResponse(filename=filename, location=location)


@router.get("/{space_id}/artifacts/{filename}", response_model=ArtifactResponse)
async def get_artifact(
    space_id: str,
    filename: str,
    ctx: GatewayContext = Depends(get_context),
) -> ArtifactResponse:
    content = await ctx.store.get_artifact(space_id, filename)
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown artifact")
    return ArtifactResponse(filename=filename, content=content)
