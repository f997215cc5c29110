"""
Operator diagnostics for run-usage tracking.

Answers "why is my run count not going up": cross-checks the stored count
function against a direct query, lists recent raw runs and, on request,
performs a real insert-then-fail cycle to prove write access. Reports only;
it never repairs data.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from edgaze.core.errors import Conflict, NotFound, UpstreamFailure
from edgaze.services import run_ledger, run_lifecycle
from edgaze.services.auth_service import jwt_secret_configured
from edgaze.services.entitlement import builder_test_run_limit
from edgaze.services.run_ledger import CountResult
from edgaze.services.targets import Target

logger = logging.getLogger(__name__)


@dataclass
class RecentRuns:
    rows: list[dict[str, Any]]
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"rows": self.rows, "error": self.error}


@dataclass
class WriteCheckResult:
    create_ok: bool = False
    create_error: Optional[str] = None
    create_error_details: Optional[dict[str, Any]] = None
    update_ok: bool = False
    update_error: Optional[str] = None
    update_error_details: Optional[dict[str, Any]] = None
    run_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "createOk": self.create_ok,
            "createError": self.create_error,
            "updateOk": self.update_ok,
            "updateError": self.update_error,
            "runId": self.run_id,
        }
        if self.create_error_details:
            body["createErrorDetails"] = self.create_error_details
        if self.update_error_details:
            body["updateErrorDetails"] = self.update_error_details
        return body


def env_check() -> dict[str, str]:
    return {
        "databaseUrl": "set" if os.getenv("DATABASE_URL") else "missing",
        "jwtSecret": "set" if jwt_secret_configured() else "missing",
    }


def _iso(dt) -> Optional[str]:
    return None if dt is None else dt.isoformat()


def _recent_runs(db: Session, user_id: str, target: Target) -> RecentRuns:
    try:
        runs = run_ledger.recent_runs(db, user_id, target)
    except UpstreamFailure as exc:
        return RecentRuns(rows=[], error=exc.message)
    return RecentRuns(
        rows=[
            {
                "id": r.id,
                "status": r.status,
                "completed_at": _iso(r.completed_at),
                "created_at": _iso(r.created_at),
                "updated_at": _iso(r.updated_at),
            }
            for r in runs
        ]
    )


def run_test_insert(db: Session, user_id: str, target: Target) -> WriteCheckResult:
    """Create one real run and mark it failed, recording each step."""
    result = WriteCheckResult()
    try:
        run = run_lifecycle.create_run(
            db,
            user_id=user_id,
            target=target,
            metadata={"diagnostic": True, "testInsert": True},
        )
    except UpstreamFailure as exc:
        result.create_error = exc.error.message or "Unknown error"
        result.create_error_details = exc.error.structured()
        return result

    result.create_ok = True
    result.run_id = run.id

    try:
        run_lifecycle.update_run(
            db,
            run.id,
            status="failed",
            error_details={"message": "Diagnostic test run"},
        )
    except UpstreamFailure as exc:
        result.update_error = exc.error.message or "Unknown error"
        result.update_error_details = exc.error.structured()
    except (Conflict, NotFound) as exc:
        # another writer moved or removed the row between the two steps
        result.update_error = exc.message
    else:
        result.update_ok = True

    return result


def _details_line(prefix: str, details: Optional[dict[str, Any]]) -> Optional[str]:
    if not details or not details.get("code"):
        return None
    return f"{prefix}: {details['code']}. {details.get('details') or ''} {details.get('hint') or ''}".rstrip()


def summarize(
    *,
    env: dict[str, str],
    count_rpc: CountResult,
    count_direct: CountResult,
    recent: RecentRuns,
    test_insert: Optional[WriteCheckResult],
) -> list[str]:
    """Rule-based list of likely causes, most fundamental first."""
    summary: list[str] = []

    if env["databaseUrl"] == "missing":
        summary.append(
            "DATABASE_URL is not set. Run tracking writes and counts go through the service database "
            "connection; without it the default local database is used."
        )
    if env["jwtSecret"] == "missing":
        summary.append("JWT_SECRET is missing. Bearer tokens cannot be verified, so run endpoints reject callers.")

    if count_rpc.error and count_direct.error:
        summary.append(
            f'Count failed: RPC error "{count_rpc.error}", direct query error "{count_direct.error}". '
            "This may be row-level security or missing grants on workflow_runs."
        )
    elif count_rpc.error:
        summary.append(
            f"RPC {run_ledger.RUN_COUNT_FUNCTION} failed: {count_rpc.error}. Direct count works "
            f"({count_direct.value}). Check that the function exists and the service role may execute it."
        )
    elif count_direct.error:
        summary.append(
            f"Direct count failed: {count_direct.error}. RPC works ({count_rpc.value}). "
            "Likely row-level security blocking the direct query."
        )
    elif count_rpc.value != count_direct.value:
        summary.append(
            f"RPC count ({count_rpc.value}) and direct count ({count_direct.value}) disagree. "
            f"Check the status and completed_at filters in {run_ledger.RUN_COUNT_FUNCTION}."
        )

    rows = recent.rows
    stuck = [r for r in rows if r["status"] in ("running", "pending")]
    counted = [r for r in rows if r["status"] in ("completed", "failed") and r["completed_at"]]
    reported_count = count_rpc.value if count_rpc.value is not None else count_direct.value

    if recent.error:
        summary.append(f"Fetching recent runs failed: {recent.error}. This may be row-level security blocking SELECT.")
    elif not rows:
        summary.append(
            "No runs in the database for this user/workflow. Inserts are likely failing "
            "(e.g. row-level security on INSERT, or a missing table)."
        )
    elif stuck and not counted:
        summary.append(
            f'{len(stuck)} run(s) are stuck in "running" or "pending". Updates to "completed"/"failed" '
            "are likely failing. Only completed/failed runs with completed_at are counted."
        )
    elif counted and not (count_rpc.value or 0) and not (count_direct.value or 0):
        summary.append(
            "There are completed/failed runs in the table but count is 0. The count query or RPC may be "
            "wrong (e.g. wrong status filter or completed_at check)."
        )
    elif counted and len(rows) < run_ledger.RECENT_RUNS_LIMIT and (reported_count or 0) != len(counted):
        summary.append(
            f"Count ({reported_count}) does not match number of completed/failed rows with completed_at "
            f"({len(counted)}). Check {run_ledger.RUN_COUNT_FUNCTION} logic."
        )

    if test_insert is not None and not test_insert.create_ok:
        summary.append(
            f"Test insert failed: {test_insert.create_error or 'Unknown error'}. This is why new runs are "
            "not being recorded (e.g. INSERT policy, constraint violation, or missing table)."
        )
        line = _details_line("Error code", test_insert.create_error_details)
        if line:
            summary.append(line)
    elif test_insert is not None and not test_insert.update_ok:
        summary.append(
            f'Test insert succeeded but update to "failed" failed: {test_insert.update_error or "Unknown error"}. '
            "Runs are created but never marked completed/failed, so they are not counted."
        )
        line = _details_line("Update error code", test_insert.update_error_details)
        if line:
            summary.append(line)

    if not summary and rows and (count_rpc.value is not None or count_direct.value is not None):
        summary.append(
            "No obvious issue from this diagnostic. Count and recent runs look consistent. If usage still "
            "does not increase, check server logs for run insert/update failures."
        )

    return summary


def build_tracking_report(
    db: Session,
    *,
    user_id: str,
    workflow_id: str,
    target: Target,
    test_insert: bool = False,
) -> dict[str, Any]:
    env = env_check()
    count_rpc = run_ledger.count_usage_via_procedure(db, user_id, target)
    count_direct = run_ledger.count_usage_direct(db, user_id, target)

    recent = _recent_runs(db, user_id, target)

    # after the reads, so the diagnostic row does not skew this report
    insert_result = run_test_insert(db, user_id, target) if test_insert else None

    summary = summarize(
        env=env,
        count_rpc=count_rpc,
        count_direct=count_direct,
        recent=recent,
        test_insert=insert_result,
    )

    if summary:
        logger.info(
            "Tracking diagnostic",
            extra={"user_id": user_id, "workflow_id": workflow_id, "findings": len(summary)},
        )

    return {
        "userId": user_id,
        "workflowId": workflow_id,
        "target": {"kind": target.kind, "id": target.id},
        "envCheck": env,
        "countRpc": count_rpc.to_dict(),
        "countDirect": count_direct.to_dict(),
        "recentRuns": recent.to_dict(),
        "testInsertResult": None if insert_result is None else insert_result.to_dict(),
        "summary": summary,
    }


def build_run_diagnostic(db: Session, *, user_id: str, workflow_id: str, target: Target) -> dict[str, Any]:
    """Tracking report without the write test, plus the current count and last run."""
    report = build_tracking_report(db, user_id=user_id, workflow_id=workflow_id, target=target)

    rows = report["recentRuns"]["rows"]
    last = rows[0] if rows else {}
    count_rpc = report["countRpc"]

    report.update(
        {
            "currentCount": count_rpc["value"] if count_rpc["value"] is not None else 0,
            "limit": builder_test_run_limit(),
            "lastRunId": last.get("id"),
            "lastRunStatus": last.get("status"),
            "lastRunCreatedAt": last.get("created_at"),
            "lastRunUpdatedAt": last.get("updated_at"),
            "error": count_rpc["error"] or report["recentRuns"]["error"],
        }
    )
    return report
