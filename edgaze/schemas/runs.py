from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class RunCreate(BaseModel):
    workflowId: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class RunFinish(BaseModel):
    status: Literal["running", "completed", "failed"]
    errorDetails: Optional[dict[str, Any]] = None
    durationMs: Optional[int] = Field(default=None, ge=0)


class RunResponse(BaseModel):
    id: str
    workflowId: Optional[str]
    draftId: Optional[str]
    userId: str
    status: str
    startedAt: Optional[str]
    completedAt: Optional[str]
    durationMs: Optional[int]
    errorDetails: Optional[dict[str, Any]]
    metadata: dict[str, Any]
    createdAt: Optional[str]
    updatedAt: Optional[str]


class RemainingRunsResponse(BaseModel):
    ok: bool = True
    used: int
    limit: int
    freeRunsRemaining: int
    isAdmin: Optional[bool] = None
