"""workflow_run_count_function

Revision ID: 8e5b7c04d6f2
Revises: 3c1f0d2a9b41
Create Date: 2026-09-28 11:03:19.550927

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e5b7c04d6f2'
down_revision: Union[str, Sequence[str], None] = '3c1f0d2a9b41'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.execute(
        """
        CREATE OR REPLACE FUNCTION get_user_workflow_run_count(
            p_user_id text,
            p_workflow_id text,
            p_draft_id text
        )
        RETURNS integer AS $$
            SELECT count(*)::integer
            FROM workflow_runs
            WHERE user_id = p_user_id
              AND status IN ('completed', 'failed')
              AND completed_at IS NOT NULL
              AND (
                    (p_draft_id IS NOT NULL AND draft_id = p_draft_id)
                 OR (p_draft_id IS NULL AND workflow_id = p_workflow_id)
              );
        $$ LANGUAGE sql STABLE;
        """
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP FUNCTION IF EXISTS get_user_workflow_run_count(text, text, text);")
