from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edgaze.core.errors import UpstreamError, UpstreamFailure
from edgaze.models.workflow_run import TERMINAL_STATUSES, WorkflowRun
from edgaze.services.targets import Target

logger = logging.getLogger(__name__)

RUN_COUNT_FUNCTION = "get_user_workflow_run_count"
RECENT_RUNS_LIMIT = 20


@dataclass
class CountResult:
    value: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "error": self.error}


def _coerce_count(value: Any) -> int:
    # bigint, numeric or text depending on driver and function definition
    if value is None or isinstance(value, bool):
        raise ValueError("RPC returned no number")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("RPC returned no number") from exc


def _scoped(q, user_id: str, target: Target):
    q = q.filter(WorkflowRun.user_id == str(user_id))
    if target.draft_id is not None:
        return q.filter(WorkflowRun.draft_id == target.draft_id)
    return q.filter(WorkflowRun.workflow_id == target.workflow_id)


def count_usage(db: Session, user_id: str, target: Target) -> int:
    """Authoritative usage count via the stored aggregate function.

    Counts the user's runs for the target whose status is completed or failed
    and whose completed_at is set. Failures propagate as UpstreamFailure.
    """
    stmt = select(
        getattr(func, RUN_COUNT_FUNCTION)(
            str(user_id),
            target.workflow_id,
            target.draft_id,
        )
    )
    try:
        value = db.execute(stmt).scalar()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "Run count function failed",
            extra={"user_id": user_id, "target_kind": target.kind, "target_id": target.id},
        )
        raise UpstreamFailure.wrap(exc) from exc

    try:
        return _coerce_count(value)
    except ValueError as exc:
        raise UpstreamFailure(UpstreamError(message=str(exc))) from exc


def count_usage_via_procedure(db: Session, user_id: str, target: Target) -> CountResult:
    try:
        return CountResult(value=count_usage(db, user_id, target))
    except UpstreamFailure as exc:
        return CountResult(error=exc.message)


def count_usage_direct(db: Session, user_id: str, target: Target) -> CountResult:
    """Same count as the stored function, computed with a filtered query."""
    try:
        q = _scoped(db.query(func.count(WorkflowRun.id)), user_id, target)
        value = (
            q.filter(WorkflowRun.status.in_(TERMINAL_STATUSES))
            .filter(WorkflowRun.completed_at.isnot(None))
            .scalar()
        )
    except SQLAlchemyError as exc:
        db.rollback()
        return CountResult(error=UpstreamError.from_exception(exc).message)
    return CountResult(value=int(value or 0))


def recent_runs(db: Session, user_id: str, target: Target, limit: int = RECENT_RUNS_LIMIT) -> list[WorkflowRun]:
    try:
        return (
            _scoped(db.query(WorkflowRun), user_id, target)
            .order_by(WorkflowRun.created_at.desc())
            .limit(int(limit))
            .all()
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc


def is_counted(run: WorkflowRun) -> bool:
    return run.status in TERMINAL_STATUSES and run.completed_at is not None
