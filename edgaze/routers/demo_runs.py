from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from edgaze.database import get_db
from edgaze.deps.auth import optional_user
from edgaze.schemas.demo_runs import DemoRunCheckResponse, DemoRunRequest, DemoRunTrackResponse
from edgaze.services import demo_runs
from edgaze.services.rate_limit import client_ip

router = APIRouter(prefix="/api/demo-runs", tags=["Demo Runs"])


@router.post("/check", response_model=DemoRunCheckResponse)
def check_demo_run(
    payload: DemoRunRequest,
    request: Request,
    user_id: Optional[str] = Depends(optional_user),
    db: Session = Depends(get_db),
):
    demo_runs.validate_demo_request(payload.workflowId, payload.deviceFingerprint)

    allowed = demo_runs.can_run_demo(
        db,
        workflow_id=payload.workflowId,
        device_fingerprint=payload.deviceFingerprint,
        ip_address=client_ip(request),
        user_id=user_id,
    )
    return {"ok": True, "allowed": allowed, "workflowId": payload.workflowId}


@router.post("/track", response_model=DemoRunTrackResponse)
def track_demo_run(
    payload: DemoRunRequest,
    request: Request,
    user_id: Optional[str] = Depends(optional_user),
    db: Session = Depends(get_db),
):
    demo_runs.validate_demo_request(payload.workflowId, payload.deviceFingerprint)

    demo_runs.record_demo_run(
        db,
        workflow_id=payload.workflowId,
        device_fingerprint=payload.deviceFingerprint,
        ip_address=client_ip(request),
        user_id=user_id,
    )
    return {"ok": True, "allowed": True, "message": "Demo run recorded successfully"}
