from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from sqlalchemy.orm import Session

from edgaze.core.errors import InvalidInput
from edgaze.database import get_db
from edgaze.deps.auth import optional_user
from edgaze.services import bug_reports
from edgaze.services.rate_limit import RateLimiter, client_ip, get_bug_report_limiter
from edgaze.services.storage import IStorageBackend, get_storage

router = APIRouter(prefix="/api/bugs", tags=["Bugs"])


@router.post("")
async def submit_bug_report(
    request: Request,
    limiter: RateLimiter = Depends(get_bug_report_limiter),
    storage: IStorageBackend = Depends(get_storage),
    reporter_id: Optional[str] = Depends(optional_user),
    db: Session = Depends(get_db),
):
    await limiter.check_and_record(client_ip(request))

    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type.lower():
        raise InvalidInput("Invalid request: expected multipart/form-data")

    form = await request.form()
    try:
        fields = {k: v for k, v in form.items() if isinstance(v, str)}
        report_input = bug_reports.parse_bug_report(fields, [])

        uploads = [item for item in form.getlist("files") if isinstance(item, UploadFile)]
        bug_reports.check_upload_limits([(u.content_type or "", u.size or 0) for u in uploads])

        attachments = [
            bug_reports.Attachment(
                filename=u.filename or "",
                content_type=u.content_type or "",
                data=await u.read(),
            )
            for u in uploads
        ]
    finally:
        await form.close()

    bug_reports.validate_attachments(attachments)
    report_input.attachments = attachments

    # session and storage calls block
    outcome = await run_in_threadpool(
        bug_reports.create_bug_report, db, storage, report_input, reporter_id=reporter_id
    )

    body = {"id": outcome.id}
    if outcome.warning:
        body["warning"] = outcome.warning
    return body
