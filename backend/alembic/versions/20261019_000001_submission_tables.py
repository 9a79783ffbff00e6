"""Create one submission table per form variant.

Revision ID: 0001_submissions
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "0001_submissions"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SUBMISSION_TABLES = (
    "ug1_submissions",
    "ug2_submissions",
    "ug3a_submissions",
    "ug3b_submissions",
    "pg1_submissions",
    "pg2a_submissions",
    "pg2b_submissions",
    "r1_submissions",
)


def upgrade() -> None:
    for table in SUBMISSION_TABLES:
        op.create_table(
            table,
            sa.Column("id", UUID(as_uuid=True), primary_key=True),
            sa.Column("status", sa.Text(), server_default="pending", nullable=False),
            sa.Column("data", JSONB(), nullable=False),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
        )
        op.create_index(f"idx_{table}_status_created", table, ["status", "created_at"])


def downgrade() -> None:
    for table in reversed(SUBMISSION_TABLES):
        op.drop_index(f"idx_{table}_status_created", table_name=table)
        op.drop_table(table)
