from typing import Any, Optional, Union

from pydantic import BaseModel, StrictFloat, StrictInt

from edgaze.schemas.runs import RunResponse


class ResetRequest(BaseModel):
    username: Optional[str] = None
    workflowId: Optional[str] = None


class ResetResponse(BaseModel):
    success: bool
    message: str
    userId: str
    workflowId: Optional[str] = None


class TokenLimitsUpdate(BaseModel):
    maxTokensPerWorkflow: Union[StrictInt, StrictFloat]
    maxTokensPerNode: Union[StrictInt, StrictFloat]
    workflowId: Optional[str] = None


class TokenLimitsResponse(BaseModel):
    success: bool
    limits: dict[str, Any]


class AdminRunItem(RunResponse):
    kind: str
    creatorUserId: Optional[str] = None
    creatorHandle: Optional[str] = None
    creatorName: Optional[str] = None


class RunAggregates(BaseModel):
    totalRuns: int
    workflowRuns: int
    draftRuns: int
    successCount: int
    errorCount: int
    successRate: int


class DailyCount(BaseModel):
    date: str
    count: int


class RunTimeSeries(BaseModel):
    workflow: list[DailyCount]
    draft: list[DailyCount]
    total: list[DailyCount]


class AdminRunsResponse(BaseModel):
    runs: list[AdminRunItem]
    total: int
    page: int
    limit: int
    aggregates: RunAggregates
    timeSeries: RunTimeSeries


class CreatorProfile(BaseModel):
    id: str
    handle: str
    fullName: Optional[str] = None


class AdminRunDetail(RunResponse):
    kind: str
    creatorUserId: Optional[str] = None
    creatorProfile: Optional[CreatorProfile] = None


class AdminRunDetailResponse(BaseModel):
    run: AdminRunDetail
