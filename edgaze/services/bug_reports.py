from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edgaze.core.errors import InvalidInput, UpstreamError, UpstreamFailure
from edgaze.models.bug_report import BugReport, BugReportAttachment
from edgaze.services.storage import IStorageBackend, StorageError
from edgaze.services.upload_validation import image_matches_declared_type

logger = logging.getLogger(__name__)

BUCKET = "bug_report_media"
MAX_FILES = 3
MAX_FILE_MB = 20
MAX_FILE_BYTES = MAX_FILE_MB * 1024 * 1024

CATEGORIES = ("ui_visual", "broken_flow", "data_issue", "performance", "error_crash")
FEATURE_AREAS = (
    "prompt_marketplace",
    "prompt_studio",
    "workflow_builder",
    "purchases",
    "account_auth",
    "other",
)
DEVICE_TYPES = ("desktop", "mobile")
BROWSERS = ("chrome", "safari", "firefox", "edge", "other")
SEVERITIES = ("blocking", "major", "minor")

REPEAT_REPORTER_THRESHOLD = 2


@dataclass
class Attachment:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class BugReportInput:
    category: str
    feature_area: str
    device_type: str
    browser: str
    severity: str
    summary: str
    steps_to_reproduce: str
    expected_behavior: str
    actual_behavior: str
    allow_follow_up: bool = False
    reporter_contact: str = ""
    current_url: str = ""
    route_path: str = ""
    app_version: str = ""
    build_hash: str = ""
    user_agent: str = ""
    attachments: list[Attachment] = field(default_factory=list)


@dataclass(frozen=True)
class BugReportOutcome:
    id: str
    warning: Optional[str] = None


def sanitize_text(value: Any, max_length: int = 4000) -> str:
    text = value if isinstance(value, str) else ""
    cleaned = text.replace("\r\n", "\n").strip()
    return cleaned[:max_length]


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value == "true"
    return False


def safe_filename(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]", "_", name)[:120]


def compute_tags(severity: str, feature_area: str) -> list[str]:
    tags = []
    if severity == "blocking":
        tags.append("blocking")
    if feature_area in ("prompt_studio", "workflow_builder"):
        tags.append("creator")
    if feature_area == "purchases":
        tags.append("buyer")
    return tags


def _one_of(name: str, value: str, allowed: tuple[str, ...]) -> str:
    if value not in allowed:
        raise InvalidInput(f"Invalid {name}")
    return value


def parse_bug_report(form: Mapping[str, Any], attachments: list[Attachment]) -> BugReportInput:
    """Validate and normalise a submitted form. Nothing is written here."""

    def _raw(key: str) -> str:
        v = form.get(key)
        return "" if v is None else str(v)

    category = _one_of("category", _raw("category"), CATEGORIES)
    feature_area = _one_of("feature_area", _raw("feature_area"), FEATURE_AREAS)
    device_type = _one_of("device_type", _raw("device_type"), DEVICE_TYPES)
    browser = _one_of("browser", _raw("browser"), BROWSERS)
    severity = _one_of("severity", _raw("severity"), SEVERITIES)

    allow_follow_up = as_bool(form.get("allow_follow_up"))

    report = BugReportInput(
        category=category,
        feature_area=feature_area,
        device_type=device_type,
        browser=browser,
        severity=severity,
        summary=sanitize_text(form.get("summary"), 180),
        steps_to_reproduce=sanitize_text(form.get("steps_to_reproduce"), 4000),
        expected_behavior=sanitize_text(form.get("expected_behavior"), 1000),
        actual_behavior=sanitize_text(form.get("actual_behavior"), 1000),
        allow_follow_up=allow_follow_up,
        reporter_contact=sanitize_text(form.get("reporter_contact"), 120) if allow_follow_up else "",
        current_url=sanitize_text(form.get("current_url"), 1000),
        route_path=sanitize_text(form.get("route_path"), 300),
        app_version=sanitize_text(form.get("app_version"), 120),
        build_hash=sanitize_text(form.get("build_hash"), 120),
        user_agent=sanitize_text(form.get("user_agent"), 1000),
    )

    if len(report.summary) < 4:
        raise InvalidInput("Summary too short")
    if len(report.steps_to_reproduce) < 10:
        raise InvalidInput("Steps to reproduce too short")
    if len(report.expected_behavior) < 2:
        raise InvalidInput("Expected behavior required")
    if len(report.actual_behavior) < 2:
        raise InvalidInput("Actual behavior required")
    if report.allow_follow_up and len(report.reporter_contact) < 4:
        raise InvalidInput("Contact required for follow-up")

    validate_attachments(attachments)
    report.attachments = list(attachments)
    return report


def check_upload_limits(declared: list[tuple[str, int]]) -> None:
    """Count, type and size rules over (content type, size) pairs.

    Runs on the part headers alone, so oversized or surplus uploads are
    refused before their bytes are read.
    """
    if len(declared) > MAX_FILES:
        raise InvalidInput(f"Max {MAX_FILES} attachments")

    for content_type, size in declared:
        content_type = (content_type or "").lower()
        if not (content_type.startswith("image/") or content_type.startswith("video/")):
            raise InvalidInput("Attachments must be images/videos")
        if size > MAX_FILE_BYTES:
            raise InvalidInput(f"Max {MAX_FILE_MB}MB per file")


def validate_attachments(attachments: list[Attachment]) -> None:
    check_upload_limits([(a.content_type, a.size) for a in attachments])

    for a in attachments:
        content_type = (a.content_type or "").lower()
        if content_type.startswith("image/") and not image_matches_declared_type(content_type, a.data):
            raise InvalidInput("Attachment content does not match declared image type")


def _storage_path(report: BugReport, attachment: Attachment) -> str:
    created = report.created_at or datetime.now(timezone.utc)
    date_prefix = created.strftime("%Y-%m-%d")

    name = attachment.filename or "upload"
    parts = name.split(".")
    ext = parts[-1].lower() if len(parts) > 1 else ""

    suffix = f".{ext}" if ext else ""
    return f"bug_reports/{date_prefix}/{report.id}/{uuid.uuid4()}{suffix}-{safe_filename(name)}"


def create_bug_report(
    db: Session,
    storage: IStorageBackend,
    report_input: BugReportInput,
    *,
    reporter_id: Optional[str] = None,
) -> BugReportOutcome:
    """Insert the report, then upload attachments.

    Attachment failures do not roll the report back; they come back as a
    warning on the outcome.
    """
    tags = compute_tags(report_input.severity, report_input.feature_area)

    try:
        if report_input.reporter_contact:
            seen = (
                db.query(BugReport.id)
                .filter(BugReport.reporter_contact == report_input.reporter_contact)
                .count()
            )
            if seen >= REPEAT_REPORTER_THRESHOLD:
                tags.append("repeat_reporter")

        report = BugReport(
            reporter_id=reporter_id,
            reporter_contact=report_input.reporter_contact or None,
            allow_follow_up=report_input.allow_follow_up,
            category=report_input.category,
            feature_area=report_input.feature_area,
            device_type=report_input.device_type,
            browser=report_input.browser,
            severity=report_input.severity,
            summary=report_input.summary,
            steps_to_reproduce=report_input.steps_to_reproduce,
            expected_behavior=report_input.expected_behavior,
            actual_behavior=report_input.actual_behavior,
            current_url=report_input.current_url,
            route_path=report_input.route_path,
            app_version=report_input.app_version or None,
            build_hash=report_input.build_hash or None,
            user_agent=report_input.user_agent or None,
            tags=tags,
        )
        db.add(report)
        db.commit()
        db.refresh(report)
    except SQLAlchemyError as exc:
        db.rollback()
        raise UpstreamFailure.wrap(exc) from exc

    logger.info("Bug report stored", extra={"bug_report_id": report.id, "severity": report.severity})

    for attachment in report_input.attachments:
        path = _storage_path(report, attachment)
        try:
            storage.upload(
                BUCKET,
                path,
                attachment.data,
                content_type=attachment.content_type or "application/octet-stream",
            )
        except StorageError as exc:
            logger.warning("Attachment upload failed", extra={"bug_report_id": report.id, "reason": str(exc)})
            return BugReportOutcome(id=report.id, warning=f"Bug saved, but attachment upload failed: {exc}")

        try:
            db.add(
                BugReportAttachment(
                    bug_report_id=report.id,
                    storage_bucket=BUCKET,
                    storage_path=path,
                    mime_type=attachment.content_type or None,
                    file_size_bytes=attachment.size,
                    original_file_name=attachment.filename or None,
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            message = UpstreamError.from_exception(exc).message
            logger.warning("Attachment record failed", extra={"bug_report_id": report.id, "reason": message})
            return BugReportOutcome(id=report.id, warning=f"Bug saved, but attachment record failed: {message}")

    return BugReportOutcome(id=report.id)
