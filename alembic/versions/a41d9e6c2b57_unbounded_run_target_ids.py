"""unbounded_run_target_ids

Revision ID: a41d9e6c2b57
Revises: 8e5b7c04d6f2
Create Date: 2026-10-19 09:42:11.208314

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a41d9e6c2b57'
down_revision: Union[str, Sequence[str], None] = '8e5b7c04d6f2'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # run targets are counted against the identifier as given, uuid or not
    op.alter_column("workflow_runs", "workflow_id", type_=sa.String(), existing_type=sa.String(36), existing_nullable=True)
    op.alter_column("workflow_runs", "draft_id", type_=sa.String(), existing_type=sa.String(36), existing_nullable=True)
    op.alter_column("demo_runs", "workflow_id", type_=sa.String(), existing_type=sa.String(36), existing_nullable=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.alter_column("demo_runs", "workflow_id", type_=sa.String(36), existing_type=sa.String(), existing_nullable=False)
    op.alter_column("workflow_runs", "draft_id", type_=sa.String(36), existing_type=sa.String(), existing_nullable=True)
    op.alter_column("workflow_runs", "workflow_id", type_=sa.String(36), existing_type=sa.String(), existing_nullable=True)
