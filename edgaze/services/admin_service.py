from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edgaze.core.errors import InvalidInput, NotFound, UpstreamFailure
from edgaze.models.demo_run import DemoRun
from edgaze.models.profile import AdminRole, Profile
from edgaze.models.workflow_run import WorkflowRun

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResetResult:
    user_id: str
    handle: str
    workflow_id: Optional[str]
    deleted: int


def is_admin(db: Session, user_id: str) -> bool:
    try:
        row = db.query(AdminRole.user_id).filter(AdminRole.user_id == str(user_id)).first()
    except SQLAlchemyError:
        logger.warning("Admin role lookup failed", extra={"user_id": user_id}, exc_info=True)
        db.rollback()
        return False
    return row is not None


def normalize_handle(username: str) -> str:
    handle = username.strip().lower()
    if handle.startswith("@"):
        handle = handle[1:]
    return handle


def find_user_id_by_handle(db: Session, username: Optional[str]) -> tuple[str, str]:
    if not username or not isinstance(username, str) or not username.strip():
        raise InvalidInput("Username is required")

    handle = normalize_handle(username)
    try:
        profile = db.query(Profile.id).filter(Profile.handle == handle).first()
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc

    if profile is None:
        raise NotFound("User not found")
    return str(profile.id), handle


def _clean_workflow_id(workflow_id: Optional[str]) -> Optional[str]:
    if workflow_id is None or not isinstance(workflow_id, str):
        return None
    return workflow_id.strip() or None


def replenish_demo_runs(db: Session, username: Optional[str], workflow_id: Optional[str] = None) -> ResetResult:
    """Delete demo-run rows of a user, optionally for one workflow only.

    Destructive and unconditional: no soft delete, no audit row.
    """
    user_id, handle = find_user_id_by_handle(db, username)
    workflow_id = _clean_workflow_id(workflow_id)

    try:
        q = db.query(DemoRun).filter(DemoRun.user_id == user_id)
        if workflow_id is not None:
            q = q.filter(DemoRun.workflow_id == workflow_id)
        deleted = q.delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc

    logger.info(
        "Demo runs replenished",
        extra={"target_user_id": user_id, "workflow_id": workflow_id, "deleted": deleted},
    )
    return ResetResult(user_id=user_id, handle=handle, workflow_id=workflow_id, deleted=deleted)


def refill_workflow_runs(db: Session, username: Optional[str], workflow_id: Optional[str] = None) -> ResetResult:
    """Delete recorded runs of a user so builder/free run usage starts over."""
    user_id, handle = find_user_id_by_handle(db, username)
    workflow_id = _clean_workflow_id(workflow_id)

    try:
        q = db.query(WorkflowRun).filter(WorkflowRun.user_id == user_id)
        if workflow_id is not None:
            q = q.filter(WorkflowRun.workflow_id == workflow_id)
        deleted = q.delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc

    logger.info(
        "Workflow runs refilled",
        extra={"target_user_id": user_id, "workflow_id": workflow_id, "deleted": deleted},
    )
    return ResetResult(user_id=user_id, handle=handle, workflow_id=workflow_id, deleted=deleted)
