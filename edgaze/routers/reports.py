from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from edgaze.database import get_db
from edgaze.deps.auth import require_user
from edgaze.schemas.reports import ReportSubmit, ReportSubmitted
from edgaze.services import reports

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.post("/submit", response_model=ReportSubmitted, status_code=201)
def submit_report(
    payload: ReportSubmit,
    reporter_id: str = Depends(require_user),
    db: Session = Depends(get_db),
):
    report = reports.submit_report(
        db,
        reporter_id=reporter_id,
        target_type=payload.target_type,
        target_id=payload.target_id,
        reason=payload.reason,
        details=payload.details,
    )
    return {"ok": True, "report_id": report.id}
