from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from edgaze.database import get_db
from edgaze.deps.auth import require_admin, require_admin_or_session
from edgaze.schemas.admin import (
    AdminRunDetailResponse,
    AdminRunsResponse,
    ResetRequest,
    ResetResponse,
    TokenLimitsResponse,
    TokenLimitsUpdate,
)
from edgaze.services import admin_service, run_reporting, token_limits

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/replenish-demo", response_model=ResetResponse, response_model_exclude_none=True)
def replenish_demo(
    payload: ResetRequest,
    _admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = admin_service.replenish_demo_runs(db, payload.username, payload.workflowId)

    if result.workflow_id:
        message = f"Demo runs replenished for user @{result.handle} on workflow {result.workflow_id}"
    else:
        message = f"All demo runs replenished for user @{result.handle}"

    return {
        "success": True,
        "message": message,
        "userId": result.user_id,
        "workflowId": result.workflow_id,
    }


@router.post("/refill-workflow-runs", response_model=ResetResponse)
def refill_workflow_runs(
    payload: ResetRequest,
    _admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = admin_service.refill_workflow_runs(db, payload.username, payload.workflowId)

    if result.workflow_id:
        message = f"Workflow runs refilled for @{result.handle} on workflow {result.workflow_id}. Run count reset."
    else:
        message = f"Workflow runs refilled for @{result.handle}. All run counts reset."

    return {
        "success": True,
        "message": message,
        "userId": result.user_id,
        "workflowId": result.workflow_id,
    }


@router.get("/token-limits", response_model=TokenLimitsResponse)
def get_token_limits(
    workflowId: Optional[str] = None,
    _admin: str = Depends(require_admin_or_session),
    db: Session = Depends(get_db),
):
    limits = token_limits.get_token_limits(db, workflowId or None)
    return {"success": True, "limits": limits.to_dict()}


@router.post("/token-limits")
def update_token_limits(
    payload: TokenLimitsUpdate,
    _admin: str = Depends(require_admin_or_session),
    db: Session = Depends(get_db),
):
    token_limits.update_token_limits(
        db,
        max_tokens_per_workflow=payload.maxTokensPerWorkflow,
        max_tokens_per_node=payload.maxTokensPerNode,
        workflow_id=payload.workflowId or None,
    )
    return {"success": True}


@router.get("/runs", response_model=AdminRunsResponse)
def list_runs(
    range_key: str = Query(run_reporting.DEFAULT_RANGE, alias="range"),
    kind: str = "",
    creator: str = "",
    page: int = Query(1, ge=1),
    limit: int = Query(run_reporting.DEFAULT_PAGE_SIZE, ge=1),
    _admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    # limit above the page cap is clamped, not rejected
    return run_reporting.list_runs(
        db,
        range_key=range_key,
        kind=kind,
        creator=creator,
        page=page,
        limit=limit,
    )


@router.get("/runs/{run_id}", response_model=AdminRunDetailResponse)
def get_run(
    run_id: str,
    _admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"run": run_reporting.get_run_detail(db, run_id)}
