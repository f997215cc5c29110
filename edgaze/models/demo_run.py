import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String

from edgaze.database import Base


class DemoRun(Base):
    """One recorded "try it" execution; existence is the whole state."""

    __tablename__ = "demo_runs"

    __table_args__ = (
        Index("ix_demo_runs_workflow_fingerprint", "workflow_id", "device_fingerprint"),
        Index("ix_demo_runs_workflow_ip", "workflow_id", "ip_address"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    workflow_id = Column(String, index=True, nullable=False)
    user_id = Column(String(36), index=True, nullable=True)

    device_fingerprint = Column(String, nullable=False)
    ip_address = Column(String, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
