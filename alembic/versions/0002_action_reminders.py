"""Per-job completed and snoozed reminder actions

Revision ID: 0002_action_reminders
Revises: 0001_initial_schema
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_action_reminders"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("job_descriptions", sa.Column("completed_actions", sa.JSON(), nullable=True))
    op.add_column("job_descriptions", sa.Column("snoozed_until", sa.JSON(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("job_descriptions") as batch_op:
        batch_op.drop_column("snoozed_until")
        batch_op.drop_column("completed_actions")
