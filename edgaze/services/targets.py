from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edgaze.core.errors import UpstreamFailure
from edgaze.models.workflow import Workflow, WorkflowDraft


@dataclass(frozen=True)
class WorkflowTarget:
    id: str
    exists: bool = True

    kind = "workflow"

    @property
    def workflow_id(self) -> Optional[str]:
        return self.id

    @property
    def draft_id(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class DraftTarget:
    id: str

    kind = "draft"

    @property
    def workflow_id(self) -> Optional[str]:
        return None

    @property
    def draft_id(self) -> Optional[str]:
        return self.id


Target = Union[WorkflowTarget, DraftTarget]


def workflow_exists(db: Session, workflow_id: str) -> bool:
    return db.query(Workflow.id).filter(Workflow.id == workflow_id).first() is not None


def find_draft_id(db: Session, draft_id: str, user_id: str) -> Optional[str]:
    row = (
        db.query(WorkflowDraft.id)
        .filter(WorkflowDraft.id == draft_id, WorkflowDraft.owner_id == user_id)
        .first()
    )
    return None if row is None else str(row.id)


def resolve_target(db: Session, user_id: str, identifier: str, allow_draft: bool = True) -> Target:
    """Decide once whether an identifier names a draft or a workflow.

    A workflow with that id always wins. Only when none exists, and
    ``allow_draft`` is set, is a draft owned by the user looked up. Anything
    else stays a workflow target with ``exists=False``.
    """
    try:
        if workflow_exists(db, identifier):
            return WorkflowTarget(id=identifier)
        if allow_draft:
            draft_id = find_draft_id(db, identifier, user_id)
            if draft_id is not None:
                return DraftTarget(id=draft_id)
        return WorkflowTarget(id=identifier, exists=False)
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc
