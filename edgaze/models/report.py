import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String, Text, UniqueConstraint

from edgaze.database import Base

REPORT_TARGET_TYPES = ("prompt", "workflow", "comment", "user")
OPEN_REPORT_STATUSES = ("open", "triaged")


class Report(Base):
    __tablename__ = "reports"

    __table_args__ = (
        UniqueConstraint(
            "reporter_id",
            "target_type",
            "target_id",
            name="uq_reports_reporter_target",
        ),
        Index("ix_reports_target", "target_type", "target_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    reporter_id = Column(String(36), index=True, nullable=False)
    target_type = Column(String, nullable=False)  # prompt|workflow|comment|user
    target_id = Column(String, nullable=False)

    reason = Column(String, nullable=False)
    details = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="open")  # open|triaged|resolved|dismissed

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
