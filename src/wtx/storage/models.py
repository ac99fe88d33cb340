"""Database models shared across the platform."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, String, Text, false, func, inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Investor(Base):
    """Investor account, as far as the referral pipeline needs it.

    Referrers are investors; their name and email are copied onto each
    referral submission so admins can see who referred the prospect.
    """

    __tablename__ = "investors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now())

    def __repr__(self) -> str:
        return f"<Investor(id={self.id}, email='{self.email}')>"


# Deferred load group of the optional viewed-state columns
VIEWED_GROUP = "viewed_state"


class InvestmentRequest(Base):
    """Request from an investor to join a project.

    `viewed`/`viewed_at` were added after the table shipped, so older
    databases may lack them (see the viewed-state ledger). Both are deferred
    and have no Python-side default, so plain loads skip them and a Core
    insert without them works on either schema.
    """

    __tablename__ = "investment_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    investor_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    investor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    units: Mapped[int | None] = mapped_column(Integer, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    preferred_contact: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # pending | approved | rejected
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    viewed: Mapped[bool | None] = mapped_column(
        Boolean, nullable=True, server_default=false(), deferred=True, deferred_group=VIEWED_GROUP
    )
    viewed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, deferred=True, deferred_group=VIEWED_GROUP
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self) -> dict[str, Any]:
        # viewed state is None when it was not loaded (or does not exist)
        unloaded = inspect(self).unloaded
        return {
            "id": self.id,
            "investor_email": self.investor_email,
            "investor_name": self.investor_name,
            "company": self.company,
            "project_name": self.project_name,
            "units": self.units,
            "message": self.message,
            "preferred_contact": self.preferred_contact,
            "status": self.status,
            "viewed": None if "viewed" in unloaded else bool(self.viewed),
            "viewed_at": None if "viewed_at" in unloaded else self.viewed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<InvestmentRequest(id={self.id}, project='{self.project_name}', status={self.status})>"
