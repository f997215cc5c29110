from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edgaze.core.errors import NotFound, UpstreamFailure
from edgaze.models.profile import Profile
from edgaze.models.workflow import Workflow, WorkflowDraft
from edgaze.models.workflow_run import TERMINAL_STATUSES, WorkflowRun
from edgaze.services.admin_service import normalize_handle
from edgaze.services.run_lifecycle import run_to_dict

RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}
DEFAULT_RANGE = "7d"
RUN_KINDS = ("workflow", "draft")
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


def _creator_id():
    # published workflows are owned by their creator; drafts by the builder
    return func.coalesce(Workflow.owner_id, WorkflowDraft.owner_id)


def _kind(draft_id: Optional[str]) -> str:
    return "draft" if draft_id else "workflow"


def _utc_date(value: datetime) -> date:
    # SQLite hands back naive datetimes, all written as UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def _scoped(query, *, since: datetime, kind: str, creator_ids: Optional[list[str]]):
    query = (
        query.select_from(WorkflowRun)
        .outerjoin(Workflow, Workflow.id == WorkflowRun.workflow_id)
        .outerjoin(WorkflowDraft, WorkflowDraft.id == WorkflowRun.draft_id)
        .filter(WorkflowRun.started_at >= since)
    )
    if kind == "workflow":
        query = query.filter(WorkflowRun.workflow_id.isnot(None))
    elif kind == "draft":
        query = query.filter(WorkflowRun.draft_id.isnot(None))
    if creator_ids is not None:
        query = query.filter(_creator_id().in_(creator_ids))
    return query


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def find_creator_ids(db: Session, search: str) -> list[str]:
    """Profiles whose handle or full name contains the search term."""
    pattern = f"%{_escape_like(normalize_handle(search))}%"
    rows = (
        db.query(Profile.id)
        .filter(
            or_(
                Profile.handle.ilike(pattern, escape="\\"),
                Profile.full_name.ilike(pattern, escape="\\"),
            )
        )
        .all()
    )
    return [str(r.id) for r in rows]


def _empty_aggregates() -> dict[str, int]:
    return {
        "totalRuns": 0,
        "workflowRuns": 0,
        "draftRuns": 0,
        "successCount": 0,
        "errorCount": 0,
        "successRate": 0,
    }


def _aggregate(finished: list[Any], since: datetime, now: datetime) -> tuple[dict[str, int], dict[str, list]]:
    aggregates = _empty_aggregates()
    buckets: dict[date, dict[str, int]] = {}
    day = since.date()
    while day <= now.date():
        buckets[day] = {"workflow": 0, "draft": 0}
        day += timedelta(days=1)

    for row in finished:
        kind = _kind(row.draft_id)
        aggregates["totalRuns"] += 1
        aggregates[f"{kind}Runs"] += 1
        if row.status == "completed":
            aggregates["successCount"] += 1
        elif row.status == "failed":
            aggregates["errorCount"] += 1

        counts = buckets.setdefault(_utc_date(row.started_at), {"workflow": 0, "draft": 0})
        counts[kind] += 1

    if aggregates["totalRuns"]:
        aggregates["successRate"] = round(aggregates["successCount"] * 100 / aggregates["totalRuns"])

    days = sorted(buckets)
    series = {
        "workflow": [{"date": d.isoformat(), "count": buckets[d]["workflow"]} for d in days],
        "draft": [{"date": d.isoformat(), "count": buckets[d]["draft"]} for d in days],
        "total": [{"date": d.isoformat(), "count": buckets[d]["workflow"] + buckets[d]["draft"]} for d in days],
    }
    return aggregates, series


def list_runs(
    db: Session,
    *,
    range_key: str = DEFAULT_RANGE,
    kind: str = "",
    creator: str = "",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Operator run dashboard.

    Semantics:
      started_at >= now - range (7d, 30d or 90d; anything else is 7d)
      kind: "workflow" | "draft" | "" (all)
      creator: substring of the creator's handle or full name
    Aggregates and the daily series cover finished runs only (the same runs
    that count toward usage); the page lists every run, newest first.
    """
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=RANGE_DAYS.get(range_key, RANGE_DAYS[DEFAULT_RANGE]))
    kind = kind if kind in RUN_KINDS else ""
    page = max(1, int(page))
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))

    try:
        creator_ids: Optional[list[str]] = None
        if creator.strip():
            creator_ids = find_creator_ids(db, creator)
            if not creator_ids:
                return {
                    "runs": [],
                    "total": 0,
                    "page": page,
                    "limit": limit,
                    "aggregates": _empty_aggregates(),
                    "timeSeries": {"workflow": [], "draft": [], "total": []},
                }

        scope = {"since": since, "kind": kind, "creator_ids": creator_ids}

        total = _scoped(db.query(func.count(WorkflowRun.id)), **scope).scalar() or 0

        rows = (
            _scoped(db.query(WorkflowRun, _creator_id().label("creator_id")), **scope)
            .order_by(WorkflowRun.started_at.desc(), WorkflowRun.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        page_creator_ids = {r.creator_id for r in rows if r.creator_id}
        profiles = {}
        if page_creator_ids:
            profiles = {
                p.id: p for p in db.query(Profile).filter(Profile.id.in_(page_creator_ids)).all()
            }

        finished = (
            _scoped(
                db.query(WorkflowRun.draft_id, WorkflowRun.status, WorkflowRun.started_at),
                **scope,
            )
            .filter(WorkflowRun.status.in_(TERMINAL_STATUSES))
            .filter(WorkflowRun.completed_at.isnot(None))
            .all()
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc

    runs = []
    for run, creator_id in rows:
        profile = profiles.get(creator_id)
        runs.append(
            {
                **run_to_dict(run),
                "kind": _kind(run.draft_id),
                "creatorUserId": creator_id,
                "creatorHandle": profile.handle if profile else None,
                "creatorName": profile.full_name if profile else None,
            }
        )

    aggregates, series = _aggregate(finished, since, now)
    return {
        "runs": runs,
        "total": int(total),
        "page": page,
        "limit": limit,
        "aggregates": aggregates,
        "timeSeries": series,
    }


def get_run_detail(db: Session, run_id: str) -> dict[str, Any]:
    try:
        row = (
            db.query(WorkflowRun, _creator_id().label("creator_id"))
            .outerjoin(Workflow, Workflow.id == WorkflowRun.workflow_id)
            .outerjoin(WorkflowDraft, WorkflowDraft.id == WorkflowRun.draft_id)
            .filter(WorkflowRun.id == run_id)
            .first()
        )
        if row is None:
            raise NotFound("Run not found")

        run, creator_id = row
        profile = db.get(Profile, creator_id) if creator_id else None
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc

    creator_profile = None
    if profile is not None:
        creator_profile = {"id": profile.id, "handle": profile.handle, "fullName": profile.full_name}

    return {
        **run_to_dict(run),
        "kind": _kind(run.draft_id),
        "creatorUserId": creator_id,
        "creatorProfile": creator_profile,
    }
