"""create core tables

Revision ID: 3c1f0d2a9b41
Revises:
Create Date: 2026-09-28 10:12:44.118301

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f0d2a9b41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("handle", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_profiles_handle", "profiles", ["handle"], unique=True)

    op.create_table(
        "admin_roles",
        sa.Column("user_id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "workflows",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.String(36), nullable=False),
        sa.Column("owner_handle", sa.String(), nullable=True),
        sa.Column("edgaze_code", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False, server_default=""),
        sa.Column("visibility", sa.String(), nullable=False, server_default="private"),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("meta", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_workflows_owner_id", "workflows", ["owner_id"], unique=False)
    op.create_index("ix_workflows_edgaze_code", "workflows", ["edgaze_code"], unique=False)

    op.create_table(
        "workflow_drafts",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(), nullable=False, server_default=""),
        sa.Column("graph", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_workflow_drafts_owner_id", "workflow_drafts", ["owner_id"], unique=False)

    op.create_table(
        "prompts",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.String(36), nullable=False),
        sa.Column("owner_handle", sa.String(), nullable=True),
        sa.Column("edgaze_code", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False, server_default=""),
        sa.Column("visibility", sa.String(), nullable=False, server_default="private"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_prompts_owner_id", "prompts", ["owner_id"], unique=False)
    op.create_index("ix_prompts_edgaze_code", "prompts", ["edgaze_code"], unique=False)

    op.create_table(
        "workflow_runs",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("workflow_id", sa.String(36), nullable=True),
        sa.Column("draft_id", sa.String(36), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("error_details", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "(workflow_id IS NULL) <> (draft_id IS NULL)",
            name="ck_workflow_runs_single_target",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="ck_workflow_runs_status",
        ),
    )
    op.create_index("ix_workflow_runs_user_id", "workflow_runs", ["user_id"], unique=False)
    op.create_index("ix_workflow_runs_user_workflow", "workflow_runs", ["user_id", "workflow_id"], unique=False)
    op.create_index("ix_workflow_runs_user_draft", "workflow_runs", ["user_id", "draft_id"], unique=False)

    op.create_table(
        "demo_runs",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("workflow_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("device_fingerprint", sa.String(), nullable=False),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_demo_runs_workflow_id", "demo_runs", ["workflow_id"], unique=False)
    op.create_index("ix_demo_runs_user_id", "demo_runs", ["user_id"], unique=False)
    op.create_index("ix_demo_runs_workflow_fingerprint", "demo_runs", ["workflow_id", "device_fingerprint"], unique=False)
    op.create_index("ix_demo_runs_workflow_ip", "demo_runs", ["workflow_id", "ip_address"], unique=False)

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(), primary_key=True, nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "reports",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("reporter_id", sa.String(36), nullable=False),
        sa.Column("target_type", sa.String(), nullable=False),
        sa.Column("target_id", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="open"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("reporter_id", "target_type", "target_id", name="uq_reports_reporter_target"),
    )
    op.create_index("ix_reports_reporter_id", "reports", ["reporter_id"], unique=False)
    op.create_index("ix_reports_target", "reports", ["target_type", "target_id"], unique=False)

    op.create_table(
        "bug_reports",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("reporter_id", sa.String(36), nullable=True),
        sa.Column("reporter_contact", sa.String(), nullable=True),
        sa.Column("allow_follow_up", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("feature_area", sa.String(), nullable=False),
        sa.Column("device_type", sa.String(), nullable=False),
        sa.Column("browser", sa.String(), nullable=False),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("summary", sa.String(), nullable=False),
        sa.Column("steps_to_reproduce", sa.Text(), nullable=False),
        sa.Column("expected_behavior", sa.Text(), nullable=False),
        sa.Column("actual_behavior", sa.Text(), nullable=False),
        sa.Column("current_url", sa.Text(), nullable=False, server_default=""),
        sa.Column("route_path", sa.String(), nullable=False, server_default=""),
        sa.Column("app_version", sa.String(), nullable=True),
        sa.Column("build_hash", sa.String(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_bug_reports_reporter_id", "bug_reports", ["reporter_id"], unique=False)
    op.create_index("ix_bug_reports_reporter_contact", "bug_reports", ["reporter_contact"], unique=False)

    op.create_table(
        "bug_report_attachments",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("bug_report_id", sa.String(36), nullable=False),
        sa.Column("storage_bucket", sa.String(), nullable=False),
        sa.Column("storage_path", sa.String(), nullable=False),
        sa.Column("mime_type", sa.String(), nullable=True),
        sa.Column("file_size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("original_file_name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["bug_report_id"], ["bug_reports.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_bug_report_attachments_bug_report_id",
        "bug_report_attachments",
        ["bug_report_id"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_bug_report_attachments_bug_report_id", table_name="bug_report_attachments")
    op.drop_table("bug_report_attachments")

    op.drop_index("ix_bug_reports_reporter_contact", table_name="bug_reports")
    op.drop_index("ix_bug_reports_reporter_id", table_name="bug_reports")
    op.drop_table("bug_reports")

    op.drop_index("ix_reports_target", table_name="reports")
    op.drop_index("ix_reports_reporter_id", table_name="reports")
    op.drop_table("reports")

    op.drop_table("app_settings")

    op.drop_index("ix_demo_runs_workflow_ip", table_name="demo_runs")
    op.drop_index("ix_demo_runs_workflow_fingerprint", table_name="demo_runs")
    op.drop_index("ix_demo_runs_user_id", table_name="demo_runs")
    op.drop_index("ix_demo_runs_workflow_id", table_name="demo_runs")
    op.drop_table("demo_runs")

    op.drop_index("ix_workflow_runs_user_draft", table_name="workflow_runs")
    op.drop_index("ix_workflow_runs_user_workflow", table_name="workflow_runs")
    op.drop_index("ix_workflow_runs_user_id", table_name="workflow_runs")
    op.drop_table("workflow_runs")

    op.drop_index("ix_prompts_edgaze_code", table_name="prompts")
    op.drop_index("ix_prompts_owner_id", table_name="prompts")
    op.drop_table("prompts")

    op.drop_index("ix_workflow_drafts_owner_id", table_name="workflow_drafts")
    op.drop_table("workflow_drafts")

    op.drop_index("ix_workflows_edgaze_code", table_name="workflows")
    op.drop_index("ix_workflows_owner_id", table_name="workflows")
    op.drop_table("workflows")

    op.drop_table("admin_roles")

    op.drop_index("ix_profiles_handle", table_name="profiles")
    op.drop_table("profiles")
