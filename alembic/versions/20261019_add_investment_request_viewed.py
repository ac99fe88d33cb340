"""Add viewed state to investment_requests

Revision ID: 002_investment_request_viewed
Revises: 001_initial
Create Date: 2026-10-19

Backs the admin notifications badge. Databases that have not run this
migration keep working: the unviewed count falls back to counting pending
requests and marking as viewed is skipped.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "002_investment_request_viewed"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add viewed and viewed_at columns."""
    op.add_column(
        "investment_requests",
        sa.Column("viewed", sa.Boolean(), nullable=True, server_default=sa.false())
    )
    op.add_column(
        "investment_requests",
        sa.Column("viewed_at", sa.DateTime(), nullable=True)
    )


def downgrade() -> None:
    """Remove viewed columns."""
    with op.batch_alter_table("investment_requests") as batch_op:
        batch_op.drop_column("viewed_at")
        batch_op.drop_column("viewed")
