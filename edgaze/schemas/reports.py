from typing import Any, Optional

from pydantic import BaseModel


class ReportSubmit(BaseModel):
    # validated by the service so bad values get a 400 with a specific message
    target_type: Any = None
    target_id: Any = None
    reason: Any = None
    details: Optional[str] = None


class ReportSubmitted(BaseModel):
    ok: bool
    report_id: str
