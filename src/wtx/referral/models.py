"""Referral system database models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from wtx.storage.models import Base, utcnow


class ReferralStatus(str, Enum):
    """Funnel position of a referral. Declaration order is funnel order."""
    PENDING = "pending"
    CLICKED = "clicked"
    SUBMITTED = "submitted"
    ACTIVE_INVESTOR = "active_investor"

    @property
    def rank(self) -> int:
        return list(ReferralStatus).index(self)

    def advance(self, target: "ReferralStatus") -> "ReferralStatus":
        """Return the further of self and target; the funnel never moves back."""
        if not isinstance(target, ReferralStatus):
            raise TypeError(f"Expected ReferralStatus, got {type(target).__name__}")
        return target if target.rank > self.rank else self


class SubmissionStatus(str, Enum):
    """Admin triage state of a submission. Any state may follow any other."""
    PENDING = "pending"
    REVIEWED = "reviewed"
    CONTACTED = "contacted"
    APPROVED = "approved"
    REJECTED = "rejected"


# Targets an admin may move a submission to
TRIAGE_STATUSES = frozenset({
    SubmissionStatus.REVIEWED,
    SubmissionStatus.CONTACTED,
    SubmissionStatus.APPROVED,
    SubmissionStatus.REJECTED,
})


def _status_column(enum_cls: type[Enum], name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


def coerce_status(enum_cls: type[Enum], value: Any) -> Enum:
    """Convert value to enum_cls, refusing members of a different enum."""
    # str-based enums compare equal to their values, so a SubmissionStatus
    # would otherwise slip into a ReferralStatus column unnoticed
    if isinstance(value, Enum) and not isinstance(value, enum_cls):
        raise TypeError(
            f"Cannot assign {type(value).__name__}.{value.name} to a {enum_cls.__name__} field"
        )
    return enum_cls(value)


class ReferralCode(Base):
    """Referral code issued to an investor.

    One code per investor, created on first request and never changed.
    """

    __tablename__ = "referral_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    investor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("investors.id"), nullable=False, unique=True
    )
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)

    # Every click on the link, including repeat and post-conversion clicks
    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ReferralCode(code={self.code}, investor_id={self.investor_id})>"


class Referral(Base):
    """One prospect attributed to a referrer.

    Created on the first click (or first contact capture) and moved forward
    through the funnel; never deleted.
    """

    __tablename__ = "referrals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referrer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("investors.id"), nullable=False, index=True
    )
    referral_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # Tracking context of an anonymous visitor (browser cookie)
    visitor_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    referred_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    referred_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[ReferralStatus] = mapped_column(
        _status_column(ReferralStatus, "referral_status"),
        default=ReferralStatus.PENDING,
        nullable=False,
        index=True,
    )

    clicked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_clicked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    signed_up_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @validates("status")
    def _validate_status(self, key: str, value: Any) -> ReferralStatus:
        return coerce_status(ReferralStatus, value)

    def advance(self, target: ReferralStatus) -> bool:
        """Move forward to target if it is further along. Returns True on change."""
        current = self.status or ReferralStatus.PENDING
        new = current.advance(target)
        if new == self.status:
            return False
        self.status = new
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "referrer_id": self.referrer_id,
            "referral_code": self.referral_code,
            "referred_email": self.referred_email,
            "referred_name": self.referred_name,
            "status": self.status.value,
            "clicked_at": self.clicked_at,
            "signed_up_at": self.signed_up_at,
            "submitted_at": self.submitted_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Referral(id={self.id}, referrer={self.referrer_id}, status={self.status})>"


class ReferralSubmission(Base):
    """Intake form filled by a referred prospect, triaged by admins."""

    __tablename__ = "referral_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # At most one submission per referral
    referral_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("referrals.id"), nullable=False, unique=True
    )
    referral_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    referrer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("investors.id"), nullable=False, index=True
    )
    referrer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    referrer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Prospect
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    state: Mapped[str | None] = mapped_column(String(200), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    investment_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    investment_interest: Mapped[str | None] = mapped_column(String(255), nullable=True)
    preferred_contact_method: Mapped[str] = mapped_column(String(20), nullable=False, default="email")
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Triage
    status: Mapped[SubmissionStatus] = mapped_column(
        _status_column(SubmissionStatus, "submission_status"),
        default=SubmissionStatus.PENDING,
        nullable=False,
        index=True,
    )
    viewed: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=False)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @validates("status")
    def _validate_status(self, key: str, value: Any) -> SubmissionStatus:
        return coerce_status(SubmissionStatus, value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "referral_id": self.referral_id,
            "referral_code": self.referral_code,
            "referrer_id": self.referrer_id,
            "referrer_name": self.referrer_name,
            "referrer_email": self.referrer_email,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
            "investment_amount": self.investment_amount,
            "investment_interest": self.investment_interest,
            "preferred_contact_method": self.preferred_contact_method,
            "message": self.message,
            "status": self.status.value,
            "viewed": bool(self.viewed),
            "viewed_at": self.viewed_at,
            "admin_notes": self.admin_notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<ReferralSubmission(id={self.id}, email='{self.email}', status={self.status})>"
