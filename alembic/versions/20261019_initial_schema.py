"""Initial referral pipeline schema

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates:
- investors: Investor accounts (referrers)
- investment_requests: Requests to join a project (without viewed state)
- referral_codes: One immutable code per investor
- referrals: Prospects attributed to a referrer
- referral_submissions: Intake forms, triaged by admins
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all initial tables."""

    op.create_table(
        "investors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_investors_email", "investors", ["email"], unique=True)

    op.create_table(
        "investment_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("investor_email", sa.String(255), nullable=False),
        sa.Column("investor_name", sa.String(255), nullable=False),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("project_name", sa.String(255), nullable=False),
        sa.Column("units", sa.Integer(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("preferred_contact", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_investment_requests_investor_email", "investment_requests", ["investor_email"], unique=False)
    op.create_index("ix_investment_requests_status", "investment_requests", ["status"], unique=False)

    op.create_table(
        "referral_codes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("investor_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("clicks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["investor_id"], ["investors.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("investor_id"),
    )
    op.create_index("ix_referral_codes_code", "referral_codes", ["code"], unique=True)

    op.create_table(
        "referrals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("referrer_id", sa.Integer(), nullable=False),
        sa.Column("referral_code", sa.String(20), nullable=False),
        sa.Column("visitor_token", sa.String(64), nullable=True),
        sa.Column("referred_email", sa.String(255), nullable=True),
        sa.Column("referred_name", sa.String(255), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("clicked_at", sa.DateTime(), nullable=True),
        sa.Column("last_clicked_at", sa.DateTime(), nullable=True),
        sa.Column("signed_up_at", sa.DateTime(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["referrer_id"], ["investors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_referrals_referrer_id", "referrals", ["referrer_id"], unique=False)
    op.create_index("ix_referrals_referral_code", "referrals", ["referral_code"], unique=False)
    op.create_index("ix_referrals_visitor_token", "referrals", ["visitor_token"], unique=False)
    op.create_index("ix_referrals_referred_email", "referrals", ["referred_email"], unique=False)
    op.create_index("ix_referrals_status", "referrals", ["status"], unique=False)

    op.create_table(
        "referral_submissions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("referral_id", sa.Integer(), nullable=False),
        sa.Column("referral_code", sa.String(20), nullable=False),
        sa.Column("referrer_id", sa.Integer(), nullable=False),
        sa.Column("referrer_name", sa.String(255), nullable=True),
        sa.Column("referrer_email", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.String(200), nullable=True),
        sa.Column("state", sa.String(200), nullable=True),
        sa.Column("zip_code", sa.String(20), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("investment_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("investment_interest", sa.String(255), nullable=True),
        sa.Column("preferred_contact_method", sa.String(20), nullable=False, server_default="email"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("viewed", sa.Boolean(), nullable=True),
        sa.Column("viewed_at", sa.DateTime(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["referral_id"], ["referrals.id"]),
        sa.ForeignKeyConstraint(["referrer_id"], ["investors.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("referral_id"),
    )
    op.create_index("ix_referral_submissions_referral_code", "referral_submissions", ["referral_code"], unique=False)
    op.create_index("ix_referral_submissions_referrer_id", "referral_submissions", ["referrer_id"], unique=False)
    op.create_index("ix_referral_submissions_email", "referral_submissions", ["email"], unique=False)
    op.create_index("ix_referral_submissions_status", "referral_submissions", ["status"], unique=False)
    op.create_index("ix_referral_submissions_created_at", "referral_submissions", ["created_at"], unique=False)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("referral_submissions")
    op.drop_table("referrals")
    op.drop_table("referral_codes")
    op.drop_table("investment_requests")
    op.drop_table("investors")
