from typing import Any, Optional

from pydantic import BaseModel


class DemoRunRequest(BaseModel):
    workflowId: Any = None
    deviceFingerprint: Any = None


class DemoRunCheckResponse(BaseModel):
    ok: bool
    allowed: bool
    workflowId: str


class DemoRunTrackResponse(BaseModel):
    ok: bool
    allowed: bool
    message: Optional[str] = None
