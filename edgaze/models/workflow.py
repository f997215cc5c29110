import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, String
from sqlalchemy.ext.mutable import MutableDict

from edgaze.database import Base

VISIBILITIES = ("public", "unlisted", "private")


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Workflow(Base):
    __tablename__ = "workflows"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), index=True, nullable=False)
    owner_handle = Column(String, nullable=True)
    edgaze_code = Column(String, index=True, nullable=True)
    title = Column(String, nullable=False, default="")

    visibility = Column(String, nullable=False, default="private")
    is_published = Column(Boolean, nullable=False, default=False)

    meta = Column(MutableDict.as_mutable(JSON), nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class WorkflowDraft(Base):
    """Unsaved, owner-scoped workflow in the builder."""

    __tablename__ = "workflow_drafts"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), index=True, nullable=False)
    title = Column(String, nullable=False, default="")
    graph = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Prompt(Base):
    __tablename__ = "prompts"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), index=True, nullable=False)
    owner_handle = Column(String, nullable=True)
    edgaze_code = Column(String, index=True, nullable=True)
    title = Column(String, nullable=False, default="")

    visibility = Column(String, nullable=False, default="private")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
