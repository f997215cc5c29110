from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from edgaze.core.errors import InvalidInput, NotFound
from edgaze.database import get_db
from edgaze.deps.auth import require_user
from edgaze.schemas.runs import RemainingRunsResponse, RunCreate, RunFinish, RunResponse
from edgaze.services import entitlement, run_diagnostics, run_ledger, run_lifecycle
from edgaze.services.admin_service import is_admin
from edgaze.services.targets import resolve_target

router = APIRouter(prefix="/api/flow", tags=["Flow Runs"])


def _flag(value: Optional[str]) -> bool:
    return value in ("1", "true")


def _require_workflow_id(workflow_id: Optional[str]) -> str:
    if not workflow_id:
        raise InvalidInput("workflowId is required")
    return workflow_id


def _workflow_id_param(workflowId: Optional[str] = Query(default=None)) -> str:
    # checked before authentication
    return _require_workflow_id(workflowId)


@router.get("/run/remaining", response_model=RemainingRunsResponse, response_model_exclude_none=True)
def remaining_runs(
    workflow_id: str = Depends(_workflow_id_param),
    isBuilderTest: Optional[str] = None,
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
):
    is_builder_test = _flag(isBuilderTest)
    # drafts only count toward builder test runs
    target = resolve_target(db, user_id, workflow_id, allow_draft=is_builder_test)
    used = run_ledger.count_usage(db, user_id, target)

    result = entitlement.evaluate(
        used,
        is_builder_test=is_builder_test,
        is_admin=is_admin(db, user_id),
    )
    return {"ok": True, **result.to_dict()}


@router.get("/run/diagnostic")
def run_diagnostic(
    workflow_id: str = Depends(_workflow_id_param),
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
):
    target = resolve_target(db, user_id, workflow_id)
    return {
        "ok": True,
        "diagnostic": run_diagnostics.build_run_diagnostic(
            db,
            user_id=user_id,
            workflow_id=workflow_id,
            target=target,
        ),
    }


@router.get("/run/tracking-diagnostic")
def tracking_diagnostic(
    workflow_id: str = Depends(_workflow_id_param),
    testInsert: Optional[str] = None,
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
):
    target = resolve_target(db, user_id, workflow_id)
    return {
        "ok": True,
        "tracking": run_diagnostics.build_tracking_report(
            db,
            user_id=user_id,
            workflow_id=workflow_id,
            target=target,
            test_insert=_flag(testInsert),
        ),
    }


@router.post("/runs", response_model=RunResponse, status_code=201)
def start_run(
    payload: RunCreate,
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
):
    target = resolve_target(db, user_id, payload.workflowId)
    run = run_lifecycle.create_run(db, user_id=user_id, target=target, metadata=payload.metadata)
    return run_lifecycle.run_to_dict(run)


@router.post("/runs/{run_id}/finish", response_model=RunResponse)
def finish_run(
    run_id: str,
    payload: RunFinish,
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
):
    run = run_lifecycle.get_run(db, run_id)
    if run is None or run.user_id != user_id:
        raise NotFound("Run not found")

    run = run_lifecycle.update_run(
        db,
        run_id,
        status=payload.status,
        error_details=payload.errorDetails,
        duration_ms=payload.durationMs,
    )
    return run_lifecycle.run_to_dict(run)
