from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edgaze.core.errors import Forbidden, InvalidInput, UpstreamFailure
from edgaze.models.demo_run import DemoRun

logger = logging.getLogger(__name__)

MIN_FINGERPRINT_LENGTH = 10
UNKNOWN_IP = "unknown"


def validate_demo_request(workflow_id: object, device_fingerprint: object) -> None:
    if not isinstance(workflow_id, str) or not workflow_id or not isinstance(device_fingerprint, str):
        raise InvalidInput("workflowId and deviceFingerprint are required")
    if len(device_fingerprint) < MIN_FINGERPRINT_LENGTH:
        raise InvalidInput("Invalid device fingerprint")


def _used_query(
    db: Session,
    workflow_id: str,
    device_fingerprint: str,
    ip_address: str,
    user_id: Optional[str],
):
    clauses = [DemoRun.device_fingerprint == device_fingerprint]
    if ip_address and ip_address != UNKNOWN_IP:
        clauses.append(DemoRun.ip_address == ip_address)
    if user_id:
        clauses.append(DemoRun.user_id == user_id)
    return db.query(DemoRun.id).filter(DemoRun.workflow_id == workflow_id, or_(*clauses))


def can_run_demo(
    db: Session,
    *,
    workflow_id: str,
    device_fingerprint: str,
    ip_address: str,
    user_id: Optional[str] = None,
) -> bool:
    """One demo run per workflow per device, IP address or signed-in user."""
    try:
        return _used_query(db, workflow_id, device_fingerprint, ip_address, user_id).first() is None
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc


def record_demo_run(
    db: Session,
    *,
    workflow_id: str,
    device_fingerprint: str,
    ip_address: str,
    user_id: Optional[str] = None,
) -> DemoRun:
    if not can_run_demo(
        db,
        workflow_id=workflow_id,
        device_fingerprint=device_fingerprint,
        ip_address=ip_address,
        user_id=user_id,
    ):
        raise Forbidden("Demo run already used for this device and IP address")

    row = DemoRun(
        workflow_id=workflow_id,
        user_id=user_id,
        device_fingerprint=device_fingerprint,
        ip_address=None if ip_address == UNKNOWN_IP else ip_address,
    )
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc

    logger.info("Demo run recorded", extra={"workflow_id": workflow_id, "user_id": user_id})
    return row


def count_demo_runs(db: Session, user_id: str, workflow_id: Optional[str] = None) -> int:
    q = db.query(DemoRun).filter(DemoRun.user_id == str(user_id))
    if workflow_id is not None:
        q = q.filter(DemoRun.workflow_id == workflow_id)
    return q.count()
