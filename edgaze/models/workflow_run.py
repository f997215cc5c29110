import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Index, Integer, String

from edgaze.database import Base

RUN_STATUSES = ("pending", "running", "completed", "failed")
TERMINAL_STATUSES = ("completed", "failed")


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowRun(Base):
    __tablename__ = "workflow_runs"

    __table_args__ = (
        CheckConstraint(
            "(workflow_id IS NULL) <> (draft_id IS NULL)",
            name="ck_workflow_runs_single_target",
        ),
        CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="ck_workflow_runs_status",
        ),
        Index("ix_workflow_runs_user_workflow", "user_id", "workflow_id"),
        Index("ix_workflow_runs_user_draft", "user_id", "draft_id"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)

    user_id = Column(String(36), index=True, nullable=False)
    # exactly one of workflow_id / draft_id
    workflow_id = Column(String, nullable=True)
    draft_id = Column(String, nullable=True)

    status = Column(String, nullable=False, default="pending")

    started_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)

    error_details = Column(JSON, nullable=True)
    run_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
