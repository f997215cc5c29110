from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edgaze.core.errors import Conflict, InvalidInput, NotFound, UpstreamFailure
from edgaze.models.workflow_run import RUN_STATUSES, TERMINAL_STATUSES, WorkflowRun
from edgaze.services.targets import Target

logger = logging.getLogger(__name__)

# status -> statuses it may be entered from
_ALLOWED_FROM = {
    "running": {"pending", "running"},
    "completed": {"pending", "running"},
    "failed": {"pending", "running"},
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_run(
    db: Session,
    *,
    user_id: str,
    target: Target,
    metadata: Optional[dict[str, Any]] = None,
) -> WorkflowRun:
    now = _utcnow()
    run = WorkflowRun(
        user_id=str(user_id),
        workflow_id=target.workflow_id,
        draft_id=target.draft_id,
        status="pending",
        started_at=now,
        run_metadata=dict(metadata or {}),
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(run)
        db.commit()
        db.refresh(run)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "Run insert failed",
            extra={"user_id": user_id, "target_kind": target.kind, "target_id": target.id},
        )
        raise UpstreamFailure.wrap(exc) from exc

    logger.info(
        "Run created",
        extra={"run_id": run.id, "user_id": user_id, "target_kind": target.kind, "target_id": target.id},
    )
    return run


def get_run(db: Session, run_id: str) -> Optional[WorkflowRun]:
    try:
        return db.query(WorkflowRun).filter(WorkflowRun.id == str(run_id)).first()
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc


def update_run(
    db: Session,
    run_id: str,
    *,
    status: str,
    completed_at: Optional[datetime] = None,
    error_details: Optional[dict[str, Any]] = None,
    duration_ms: Optional[int] = None,
) -> WorkflowRun:
    """Move a run forward in its lifecycle.

    Terminal runs accept a rewrite with the same terminal status as a no-op;
    any other transition out of completed/failed raises Conflict.
    """
    if status not in RUN_STATUSES or status == "pending":
        raise InvalidInput(f"Invalid run status: {status}")

    run = get_run(db, run_id)
    if run is None:
        raise NotFound("Run not found")

    if run.status in TERMINAL_STATUSES:
        if run.status == status:
            return run
        raise Conflict(f"Run is already {run.status}")

    if run.status not in _ALLOWED_FROM[status]:
        raise Conflict(f"Cannot move run from {run.status} to {status}")

    now = _utcnow()
    run.status = status
    run.updated_at = now
    if status in TERMINAL_STATUSES:
        # usage only counts terminal runs that carry completed_at
        run.completed_at = completed_at or now
        run.error_details = error_details
        if duration_ms is not None:
            run.duration_ms = int(duration_ms)

    try:
        db.commit()
        db.refresh(run)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Run update failed", extra={"run_id": run_id, "status": status})
        raise UpstreamFailure.wrap(exc) from exc

    logger.info("Run updated", extra={"run_id": run.id, "status": status})
    return run


def run_to_dict(run: WorkflowRun) -> dict[str, Any]:
    return {
        "id": run.id,
        "workflowId": run.workflow_id,
        "draftId": run.draft_id,
        "userId": run.user_id,
        "status": run.status,
        "startedAt": run.started_at.isoformat() if run.started_at else None,
        "completedAt": run.completed_at.isoformat() if run.completed_at else None,
        "durationMs": run.duration_ms,
        "errorDetails": run.error_details,
        "metadata": run.run_metadata or {},
        "createdAt": run.created_at.isoformat() if run.created_at else None,
        "updatedAt": run.updated_at.isoformat() if run.updated_at else None,
    }
