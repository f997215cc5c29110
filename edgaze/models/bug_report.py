import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, ForeignKey, String, Text

from edgaze.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class BugReport(Base):
    __tablename__ = "bug_reports"

    id = Column(String(36), primary_key=True, default=_uuid)

    reporter_id = Column(String(36), index=True, nullable=True)
    reporter_contact = Column(String, index=True, nullable=True)
    allow_follow_up = Column(Boolean, nullable=False, default=False)

    category = Column(String, nullable=False)
    feature_area = Column(String, nullable=False)
    device_type = Column(String, nullable=False)
    browser = Column(String, nullable=False)
    severity = Column(String, nullable=False)

    summary = Column(String, nullable=False)
    steps_to_reproduce = Column(Text, nullable=False)
    expected_behavior = Column(Text, nullable=False)
    actual_behavior = Column(Text, nullable=False)

    current_url = Column(Text, nullable=False, default="")
    route_path = Column(String, nullable=False, default="")
    app_version = Column(String, nullable=True)
    build_hash = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)

    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class BugReportAttachment(Base):
    __tablename__ = "bug_report_attachments"

    id = Column(String(36), primary_key=True, default=_uuid)
    bug_report_id = Column(
        String(36),
        ForeignKey("bug_reports.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    storage_bucket = Column(String, nullable=False)
    storage_path = Column(String, nullable=False)
    mime_type = Column(String, nullable=True)
    file_size_bytes = Column(BigInteger, nullable=False)
    original_file_name = Column(String, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
