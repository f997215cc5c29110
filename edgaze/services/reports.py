from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from edgaze.core.errors import Conflict, InvalidInput, UpstreamError, UpstreamFailure
from edgaze.models.report import OPEN_REPORT_STATUSES, REPORT_TARGET_TYPES, Report
from edgaze.models.workflow import Prompt, Workflow

logger = logging.getLogger(__name__)

AUTO_UNLIST_THRESHOLD = 3

_LISTING_MODELS = {
    "prompt": Prompt,
    "workflow": Workflow,
}


def validate_report(target_type: object, target_id: object, reason: object) -> None:
    if not isinstance(target_type, str) or target_type not in REPORT_TARGET_TYPES:
        raise InvalidInput("Invalid target_type")
    if not isinstance(target_id, str) or not target_id:
        raise InvalidInput("Invalid target_id")
    if not isinstance(reason, str) or not reason:
        raise InvalidInput("Invalid reason")


def _already_reported(db: Session, reporter_id: str, target_type: str, target_id: str) -> bool:
    row = (
        db.query(Report.id)
        .filter(
            Report.reporter_id == reporter_id,
            Report.target_type == target_type,
            Report.target_id == target_id,
        )
        .first()
    )
    return row is not None


def _open_report_count(db: Session, target_type: str, target_id: str) -> int:
    return int(
        db.query(func.count(Report.id))
        .filter(
            Report.target_type == target_type,
            Report.target_id == target_id,
            Report.status.in_(OPEN_REPORT_STATUSES),
        )
        .scalar()
        or 0
    )


def _maybe_unlist(db: Session, target_type: str, target_id: str) -> bool:
    """Hide a public listing from the marketplace once enough reports are open."""
    model = _LISTING_MODELS.get(target_type)
    if model is None:
        return False

    if _open_report_count(db, target_type, target_id) < AUTO_UNLIST_THRESHOLD:
        return False

    listing = db.query(model).filter(model.id == target_id).first()
    if listing is None or listing.visibility != "public":
        return False

    listing.visibility = "unlisted"
    db.commit()
    logger.info(
        "Listing unlisted after reports",
        extra={"target_type": target_type, "target_id": target_id},
    )
    return True


def submit_report(
    db: Session,
    *,
    reporter_id: str,
    target_type: object,
    target_id: object,
    reason: object,
    details: Optional[str] = None,
) -> Report:
    validate_report(target_type, target_id, reason)

    try:
        if _already_reported(db, reporter_id, target_type, target_id):
            raise Conflict("You have already reported this item")

        report = Report(
            reporter_id=reporter_id,
            target_type=target_type,
            target_id=target_id,
            reason=reason,
            details=details or None,
            status="open",
        )
        db.add(report)
        db.commit()
        db.refresh(report)
    except IntegrityError as exc:
        # concurrent duplicate caught by the unique constraint
        db.rollback()
        raise Conflict("You have already reported this item") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Failed to insert report", extra={"target_type": target_type, "target_id": target_id})
        raise UpstreamFailure(UpstreamError(message="Failed to submit report")) from exc

    try:
        _maybe_unlist(db, target_type, target_id)
    except SQLAlchemyError:
        # the report itself is stored; visibility is re-evaluated on the next report
        db.rollback()
        logger.warning(
            "Visibility demotion failed",
            extra={"target_type": target_type, "target_id": target_id},
            exc_info=True,
        )

    return report
