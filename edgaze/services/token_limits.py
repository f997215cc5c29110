from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edgaze.core.errors import InvalidInput, NotFound, UpstreamFailure
from edgaze.models.app_setting import AppSetting
from edgaze.models.workflow import Workflow

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS_PER_WORKFLOW = 200_000
DEFAULT_MAX_TOKENS_PER_NODE = 50_000

TOKEN_LIMITS_SETTING_KEY = "token_limits"


@dataclass(frozen=True)
class TokenLimits:
    max_tokens_per_workflow: float
    max_tokens_per_node: float
    workflow_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "maxTokensPerWorkflow": self.max_tokens_per_workflow,
            "maxTokensPerNode": self.max_tokens_per_node,
        }
        if self.workflow_id is not None:
            body["workflowId"] = self.workflow_id
        return body


def _from_stored(value: Any, workflow_id: Optional[str] = None) -> TokenLimits:
    # zero or missing stored values fall back to defaults
    value = value if isinstance(value, dict) else {}
    return TokenLimits(
        max_tokens_per_workflow=value.get("maxTokensPerWorkflow") or DEFAULT_MAX_TOKENS_PER_WORKFLOW,
        max_tokens_per_node=value.get("maxTokensPerNode") or DEFAULT_MAX_TOKENS_PER_NODE,
        workflow_id=workflow_id,
    )


def get_token_limits(db: Session, workflow_id: Optional[str] = None) -> TokenLimits:
    """Workflow-specific limits, else global limits, else defaults."""
    try:
        if workflow_id:
            workflow = db.query(Workflow).filter(Workflow.id == workflow_id).first()
            stored = (workflow.meta or {}).get("tokenLimits") if workflow is not None else None
            if stored:
                return _from_stored(stored, workflow_id=workflow_id)

        setting = db.query(AppSetting).filter(AppSetting.key == TOKEN_LIMITS_SETTING_KEY).first()
        if setting is not None and setting.value:
            return _from_stored(setting.value)
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Token limit lookup failed, using defaults", extra={"workflow_id": workflow_id}, exc_info=True)

    return TokenLimits(
        max_tokens_per_workflow=DEFAULT_MAX_TOKENS_PER_WORKFLOW,
        max_tokens_per_node=DEFAULT_MAX_TOKENS_PER_NODE,
    )


def validate_token_limits(max_tokens_per_workflow: Any, max_tokens_per_node: Any) -> None:
    for v in (max_tokens_per_workflow, max_tokens_per_node):
        if isinstance(v, bool) or not isinstance(v, (int, float)) or v < 0:
            raise InvalidInput("Invalid token limit values")


def update_token_limits(
    db: Session,
    *,
    max_tokens_per_workflow: float,
    max_tokens_per_node: float,
    workflow_id: Optional[str] = None,
) -> None:
    validate_token_limits(max_tokens_per_workflow, max_tokens_per_node)
    stored = {
        "maxTokensPerWorkflow": max_tokens_per_workflow,
        "maxTokensPerNode": max_tokens_per_node,
    }

    try:
        if workflow_id:
            workflow = db.query(Workflow).filter(Workflow.id == workflow_id).first()
            if workflow is None:
                raise NotFound("Workflow not found")
            meta = dict(workflow.meta or {})
            meta["tokenLimits"] = stored
            workflow.meta = meta
        else:
            setting = db.get(AppSetting, TOKEN_LIMITS_SETTING_KEY)
            if setting is None:
                setting = AppSetting(key=TOKEN_LIMITS_SETTING_KEY)
                db.add(setting)
            setting.value = stored
            setting.updated_at = datetime.now(timezone.utc)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc

    logger.info("Token limits updated", extra={"workflow_id": workflow_id, **stored})
