import uuid
from datetime import datetime, timedelta, timezone

import pytest

from edgaze.core.errors import UpstreamFailure
from edgaze.models import Workflow, WorkflowDraft, WorkflowRun
from edgaze.services import run_ledger
from edgaze.services.targets import DraftTarget, WorkflowTarget, resolve_target


def _now():
    return datetime.now(timezone.utc)


def _add_run(db, user_id, *, workflow_id=None, draft_id=None, status="completed", completed=True):
    run = WorkflowRun(
        user_id=user_id,
        workflow_id=workflow_id,
        draft_id=draft_id,
        status=status,
        completed_at=_now() if completed else None,
    )
    db.add(run)
    db.commit()
    return run


def test_only_terminal_runs_with_completed_at_are_counted(db):
    user_id = "ledger-user"
    workflow_id = str(uuid.uuid4())

    _add_run(db, user_id, workflow_id=workflow_id, status="completed")
    _add_run(db, user_id, workflow_id=workflow_id, status="failed")
    _add_run(db, user_id, workflow_id=workflow_id, status="completed", completed=False)
    _add_run(db, user_id, workflow_id=workflow_id, status="running", completed=False)
    _add_run(db, user_id, workflow_id=workflow_id, status="pending", completed=False)
    _add_run(db, "other-user", workflow_id=workflow_id, status="completed")
    _add_run(db, user_id, workflow_id=str(uuid.uuid4()), status="completed")

    target = WorkflowTarget(id=workflow_id)
    assert run_ledger.count_usage(db, user_id, target) == 2
    assert run_ledger.count_usage_direct(db, user_id, target).value == 2
    assert run_ledger.count_usage_via_procedure(db, user_id, target).to_dict() == {"value": 2, "error": None}


def test_draft_and_workflow_usage_are_separate(db):
    user_id = "draft-ledger-user"
    shared_id = str(uuid.uuid4())

    _add_run(db, user_id, draft_id=shared_id)
    _add_run(db, user_id, draft_id=shared_id)
    _add_run(db, user_id, workflow_id=shared_id)

    assert run_ledger.count_usage(db, user_id, DraftTarget(id=shared_id)) == 2
    assert run_ledger.count_usage(db, user_id, WorkflowTarget(id=shared_id)) == 1


def test_recent_runs_newest_first_and_limited(db):
    user_id = "recent-user"
    workflow_id = str(uuid.uuid4())
    base = _now()

    for i in range(run_ledger.RECENT_RUNS_LIMIT + 3):
        db.add(
            WorkflowRun(
                user_id=user_id,
                workflow_id=workflow_id,
                status="completed",
                completed_at=base,
                created_at=base + timedelta(seconds=i),
            )
        )
    db.commit()

    rows = run_ledger.recent_runs(db, user_id, WorkflowTarget(id=workflow_id))
    assert len(rows) == run_ledger.RECENT_RUNS_LIMIT
    created = [r.created_at for r in rows]
    assert created == sorted(created, reverse=True)


def test_procedure_failure_raises_without_fallback(db, monkeypatch):
    monkeypatch.setattr(run_ledger, "RUN_COUNT_FUNCTION", "no_such_run_count_function")
    target = WorkflowTarget(id=str(uuid.uuid4()))

    with pytest.raises(UpstreamFailure):
        run_ledger.count_usage(db, "u", target)

    result = run_ledger.count_usage_via_procedure(db, "u", target)
    assert result.value is None
    assert result.error

    # the direct query still answers
    assert run_ledger.count_usage_direct(db, "u", target).value == 0


def test_coerce_count_rejects_non_numbers():
    assert run_ledger._coerce_count("7") == 7
    with pytest.raises(ValueError):
        run_ledger._coerce_count(None)
    with pytest.raises(ValueError):
        run_ledger._coerce_count("seven")
    with pytest.raises(ValueError):
        run_ledger._coerce_count(True)


def test_resolve_target(db):
    workflow_id = str(uuid.uuid4())
    draft_id = str(uuid.uuid4())
    db.add(Workflow(id=workflow_id, owner_id="owner", title="Flow"))
    db.add(WorkflowDraft(id=draft_id, owner_id="owner", title="Draft"))
    db.commit()

    assert resolve_target(db, "owner", draft_id) == DraftTarget(id=draft_id)
    # another user's draft id is not theirs to count against
    assert resolve_target(db, "stranger", draft_id) == WorkflowTarget(id=draft_id, exists=False)
    assert resolve_target(db, "owner", workflow_id) == WorkflowTarget(id=workflow_id, exists=True)

    # drafts are only looked up when asked for
    assert resolve_target(db, "owner", draft_id, allow_draft=False) == WorkflowTarget(id=draft_id, exists=False)

    unknown = resolve_target(db, "owner", "not-a-known-id")
    assert unknown.kind == "workflow"
    assert unknown.exists is False
    assert unknown.draft_id is None


def test_resolve_target_prefers_workflow_over_same_id_draft(db):
    shared_id = str(uuid.uuid4())
    db.add(Workflow(id=shared_id, owner_id="owner", title="Published"))
    db.add(WorkflowDraft(id=shared_id, owner_id="owner", title="Draft"))
    db.commit()

    assert resolve_target(db, "owner", shared_id) == WorkflowTarget(id=shared_id, exists=True)
