"""HTTP API for task submission and status queries."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agent_gateway.core.errors import NoAgentAvailableError, TaskNotFoundError
from agent_gateway.core.models import ContextRef, Message, MessageType, Payload, new_id, now_ms
from agent_gateway.runtime import GatewayContext, get_context

router = APIRouter(prefix="/tasks", tags=["tasks"])


class ContextModel(BaseModel):
    shared_space_id: str
    history: List[str] = Field(default_factory=list)
    artifacts: List[str] = Field(default_factory=list)


class PayloadModel(BaseModel):
    task: str = Field(..., min_length=1, description="Natural-language task text")
    context: Optional[ContextModel] = None
    files: List[str] = Field(default_factory=list)
    options: Dict[str, Any] = Field(default_factory=dict)


class TaskSubmitRequest(BaseModel):
    source: str = Field("api", description="Identifier of the submitting client")
    correlation_id: Optional[str] = None
    payload: PayloadModel

    def to_message(self) -> Message:
        context = None
        if self.payload.context is not None:
            context = ContextRef(
                shared_space_id=self.payload.context.shared_space_id,
                history=tuple(self.payload.context.history),
                artifacts=tuple(self.payload.context.artifacts),
            )
        return Message(
            id=new_id(),
            type=MessageType.REQUEST,
            source=self.source,
            target="gateway",
            correlation_id=self.correlation_id or new_id(),
            timestamp=now_ms(),
            payload=Payload(
                task=self.payload.task,
                context=context,
                files=tuple(self.payload.files),
                options=dict(self.payload.options),
            ),
        )


class ErrorModel(BaseModel):
    code: str
    message: str


class TaskResponse(BaseModel):
    id: str
    status: str
    assigned_agents: List[str]
    result: Any = None
    error: Optional[ErrorModel] = None
    created_at: int
    updated_at: int


@router.post("", response_model=TaskResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_task(
    request: TaskSubmitRequest,
    ctx: GatewayContext = Depends(get_context),
) -> TaskResponse:
    try:
        task = await ctx.tasks.process_task(request.to_message())
    except NoAgentAvailableError as exc:
        detail: Dict[str, Any] = {"code": exc.code.value, "message": exc.message}
        if exc.task is not None:
            detail["task_id"] = exc.task.id
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail) from exc
    return TaskResponse(**task.to_status_dict())


@router.get("", response_model=List[TaskResponse])
async def list_tasks(ctx: GatewayContext = Depends(get_context)) -> List[TaskResponse]:
    return [TaskResponse(**task.to_status_dict()) for task in ctx.tasks.list_tasks()]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, ctx: GatewayContext = Depends(get_context)) -> TaskResponse:
    try:
        return TaskResponse(**ctx.tasks.status(task_id))
    except TaskNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": exc.code.value, "message": exc.message},
        ) from exc
