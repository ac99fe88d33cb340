"""Referral funnel: click -> contact -> submission -> active investor.

Status only ever moves forward along ReferralStatus. Repeat clicks from the
same tracking context reuse the same referral row, and clicks on a referral
that has already converted are counted without touching its status or its
conversion timestamps.
"""

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from wtx.events import ChangeFeed, ChangeType, change_feed
from wtx.logging_config import get_logger
from wtx.referral.exceptions import InvalidReferralCode, ReferralError, ReferralNotFound
from wtx.referral.models import Referral, ReferralCode, ReferralStatus, ReferralSubmission
from wtx.referral.registry import ReferralCodeRegistry
from wtx.storage.db import Database, db
from wtx.storage.models import utcnow

logger = get_logger(__name__)

# Statuses an anonymous click can still be merged into
_OPEN_STATUSES = (ReferralStatus.PENDING, ReferralStatus.CLICKED)


class ReferralFunnel:
    """Tracks referral status transitions."""

    def __init__(
        self,
        registry: ReferralCodeRegistry | None = None,
        database: Database | None = None,
        feed: ChangeFeed | None = None,
    ):
        self.db = database or db
        self.registry = registry or ReferralCodeRegistry(database=self.db)
        self.feed = feed or change_feed
        self.logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve_code(self, session: Session, code: str | None) -> ReferralCode:
        """Load the code row inside session, or raise InvalidReferralCode."""
        referral_code = self.registry.find(session, code)
        if referral_code is None:
            raise InvalidReferralCode(code)
        return referral_code

    def _by_visitor(self, session: Session, code: str, visitor_token: str | None) -> Referral | None:
        if not visitor_token:
            return None
        return session.scalars(
            select(Referral)
            .where(Referral.referral_code == code, Referral.visitor_token == visitor_token)
            .order_by(Referral.created_at.desc(), Referral.id.desc())
        ).first()

    def _by_email(self, session: Session, code: str, email: str | None) -> Referral | None:
        if not email:
            return None
        return session.scalars(
            select(Referral)
            .where(
                Referral.referral_code == code,
                func.lower(Referral.referred_email) == email.strip().lower(),
            )
            .order_by(Referral.created_at.desc(), Referral.id.desc())
        ).first()

    def _open_anonymous(self, session: Session, code: str) -> Referral | None:
        """The code's unattributed referral that has not converted yet."""
        return session.scalars(
            select(Referral)
            .where(
                Referral.referral_code == code,
                Referral.referred_email.is_(None),
                Referral.visitor_token.is_(None),
                Referral.status.in_(_OPEN_STATUSES),
            )
            .order_by(Referral.created_at.desc(), Referral.id.desc())
        ).first()

    def find_referral(
        self,
        session: Session,
        code: str,
        visitor_token: str | None = None,
        email: str | None = None,
    ) -> Referral | None:
        """Find the referral a visitor action belongs to.

        Priority: same email under this code, then same tracking context,
        then (without a tracking context) the open anonymous referral.
        """
        referral = self._by_email(session, code, email) or self._by_visitor(session, code, visitor_token)
        if referral is None and not visitor_token:
            referral = self._open_anonymous(session, code)
        return referral

    @staticmethod
    def _is_other_prospect(referral: Referral, email: str) -> bool:
        """True when a converted referral belongs to a different email."""
        if referral.status.rank <= ReferralStatus.CLICKED.rank:
            return False
        current = (referral.referred_email or "").lower()
        return bool(current) and current != email.lower()

    def _new_referral(
        self,
        session: Session,
        referral_code: ReferralCode,
        visitor_token: str | None,
    ) -> Referral:
        now = utcnow()
        referral = Referral(
            referrer_id=referral_code.investor_id,
            referral_code=referral_code.code,
            visitor_token=visitor_token,
            status=ReferralStatus.CLICKED,
            clicked_at=now,
            last_clicked_at=now,
        )
        session.add(referral)
        session.flush()
        return referral

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def track_click(self, code: str, visitor_token: str | None = None) -> Referral:
        """Record a click on a referral link.

        Args:
            code: Referral code from the link
            visitor_token: Tracking context of the visitor, if known

        Returns:
            The referral the click was attributed to

        Raises:
            InvalidReferralCode: unknown code
        """
        created = False
        with self.db.session() as session:
            referral_code = self.resolve_code(session, code)
            session.execute(
                update(ReferralCode)
                .where(ReferralCode.id == referral_code.id)
                .values(clicks=ReferralCode.clicks + 1),
                execution_options={"synchronize_session": False},
            )

            referral = self.find_referral(session, referral_code.code, visitor_token=visitor_token)
            if referral is None:
                referral = self._new_referral(session, referral_code, visitor_token)
                created = True
            else:
                now = utcnow()
                referral.last_clicked_at = now
                if referral.clicked_at is None:
                    referral.clicked_at = now
                referral.advance(ReferralStatus.CLICKED)
            session.flush()

        self.feed.publish(
            "referrals",
            ChangeType.INSERT if created else ChangeType.UPDATE,
            [referral.id],
        )
        self.logger.info(
            "referral_click_tracked",
            code=referral.referral_code,
            referral_id=referral.id,
            referrer_id=referral.referrer_id,
            status=referral.status.value,
            new_referral=created,
        )
        return referral

    def update_contact(
        self,
        code: str,
        email: str,
        name: str | None,
        visitor_token: str | None = None,
    ) -> Referral:
        """Attach an email and name to a referral.

        Creates a clicked referral when the visitor has none yet. Never
        moves the status backward.

        Raises:
            InvalidReferralCode: unknown code
            ValueError: missing or malformed email
        """
        email = (email or "").strip()
        if not email or "@" not in email:
            raise ValueError("A valid email is required to attribute a referral")
        name = (name or "").strip() or None

        created = False
        with self.db.session() as session:
            referral_code = self.resolve_code(session, code)
            referral = self.find_referral(
                session, referral_code.code, visitor_token=visitor_token, email=email
            )
            if referral is not None and self._is_other_prospect(referral, email):
                self.logger.info(
                    "referral_contact_new_prospect",
                    code=referral_code.code,
                    converted_referral_id=referral.id,
                )
                referral = None
            if referral is None:
                referral = self._new_referral(session, referral_code, visitor_token)
                created = True

            if referral.status.rank > ReferralStatus.CLICKED.rank:
                # converted referrals keep the details they converted with
                referral.referred_email = referral.referred_email or email
                referral.referred_name = referral.referred_name or name
            else:
                referral.referred_email = email
                if name:
                    referral.referred_name = name
            referral.advance(ReferralStatus.CLICKED)
            session.flush()

        self.feed.publish(
            "referrals",
            ChangeType.INSERT if created else ChangeType.UPDATE,
            [referral.id],
        )
        self.logger.info(
            "referral_contact_updated",
            code=referral.referral_code,
            referral_id=referral.id,
            referrer_id=referral.referrer_id,
        )
        return referral

    def referral_for_submission(
        self,
        session: Session,
        referral_code: ReferralCode,
        email: str,
        visitor_token: str | None = None,
    ) -> Referral:
        """Referral a new submission attaches to, inside the caller's session.

        A referral owns at most one submission; if the matched referral
        already has one, the new submission gets a fresh referral row.
        """
        referral = self.find_referral(
            session, referral_code.code, visitor_token=visitor_token, email=email
        )
        if referral is not None:
            has_submission = session.scalars(
                select(ReferralSubmission.id).where(ReferralSubmission.referral_id == referral.id)
            ).first()
            if has_submission is not None:
                self.logger.info(
                    "referral_already_submitted",
                    referral_id=referral.id,
                    code=referral_code.code,
                )
                referral = None

        if referral is None:
            referral = self._new_referral(session, referral_code, visitor_token)
        return referral

    @staticmethod
    def mark_submitted(referral: Referral, email: str, name: str | None) -> None:
        """Move a referral to submitted and fill in missing identity."""
        if not referral.referred_email:
            referral.referred_email = email
        if name and not referral.referred_name:
            referral.referred_name = name
        referral.advance(ReferralStatus.SUBMITTED)
        if referral.submitted_at is None:
            referral.submitted_at = utcnow()

    def mark_active_investor(self, referral_id: int) -> Referral:
        """Admin confirms the referred prospect became an investor.

        Raises:
            ReferralNotFound: unknown referral
            ReferralError: referral has not submitted yet
        """
        with self.db.session() as session:
            referral = session.get(Referral, referral_id)
            if referral is None:
                raise ReferralNotFound(f"Referral {referral_id} not found")
            if referral.status.rank < ReferralStatus.SUBMITTED.rank:
                raise ReferralError(
                    f"Referral {referral_id} is {referral.status.value}; only submitted referrals can become active investors"
                )

            changed = referral.advance(ReferralStatus.ACTIVE_INVESTOR)
            if referral.signed_up_at is None:
                referral.signed_up_at = utcnow()
            session.flush()

        if changed:
            self.feed.publish("referrals", ChangeType.UPDATE, [referral.id])
            self.logger.info(
                "referral_activated",
                referral_id=referral.id,
                referrer_id=referral.referrer_id,
            )
        return referral

    # ------------------------------------------------------------------
    # Referrer views
    # ------------------------------------------------------------------

    def get_referral(self, referral_id: int) -> Referral | None:
        with self.db.session() as session:
            return session.get(Referral, referral_id)

    def get_stats(self, investor_id: int) -> dict[str, int]:
        """Referral counts per funnel status for a referrer."""
        with self.db.session() as session:
            rows = session.execute(
                select(Referral.status, func.count(Referral.id))
                .where(Referral.referrer_id == investor_id)
                .group_by(Referral.status)
            ).all()

        counts = {ReferralStatus(status): count for status, count in rows}
        return {
            "total_referrals": sum(counts.values()),
            "pending": counts.get(ReferralStatus.PENDING, 0),
            "clicked": counts.get(ReferralStatus.CLICKED, 0),
            "submitted": counts.get(ReferralStatus.SUBMITTED, 0),
            "active_investors": counts.get(ReferralStatus.ACTIVE_INVESTOR, 0),
        }

    def list_referrals(self, investor_id: int) -> list[dict[str, Any]]:
        """A referrer's referrals, newest first, with their submission status."""
        with self.db.session() as session:
            rows = session.execute(
                select(Referral, ReferralSubmission.status, ReferralSubmission.created_at)
                .outerjoin(ReferralSubmission, ReferralSubmission.referral_id == Referral.id)
                .where(Referral.referrer_id == investor_id)
                .order_by(Referral.created_at.desc(), Referral.id.desc())
            ).all()

        referrals = []
        for referral, submission_status, submission_created_at in rows:
            item = referral.to_dict()
            item["submission_status"] = submission_status.value if submission_status else None
            item["submission_created_at"] = submission_created_at
            referrals.append(item)
        return referrals
