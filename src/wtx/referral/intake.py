"""Referral submission intake and admin triage."""

from collections.abc import Mapping
from typing import Any

from sqlalchemy import func, or_, select

from wtx.events import ChangeFeed, ChangeType, change_feed
from wtx.logging_config import get_logger
from wtx.notifications.ledger import ViewedLedger
from wtx.referral.exceptions import SubmissionNotFound
from wtx.referral.funnel import ReferralFunnel
from wtx.referral.models import TRIAGE_STATUSES, ReferralSubmission, SubmissionStatus, coerce_status
from wtx.referral.schemas import ReferralSubmissionForm
from wtx.referral.validators import validate_form
from wtx.settings import settings
from wtx.storage.db import Database, db
from wtx.storage.models import Investor, utcnow

logger = get_logger(__name__)

MAX_PAGE_SIZE = 500


def submissions_ledger(database: Database | None = None, feed: ChangeFeed | None = None) -> ViewedLedger:
    """Ledger over all submissions; degraded mode counts pending ones."""
    return ViewedLedger(
        ReferralSubmission,
        status=None,
        fallback_status=SubmissionStatus.PENDING,
        database=database,
        feed=feed,
    )


class SubmissionIntake:
    """Captures referral forms and runs the admin triage workflow."""

    def __init__(
        self,
        funnel: ReferralFunnel | None = None,
        ledger: ViewedLedger | None = None,
        database: Database | None = None,
        feed: ChangeFeed | None = None,
    ):
        self.db = database or db
        self.feed = feed or change_feed
        self.funnel = funnel or ReferralFunnel(database=self.db, feed=self.feed)
        self.ledger = ledger or submissions_ledger(database=self.db, feed=self.feed)
        self.logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def submit(
        self,
        code: str,
        form: ReferralSubmissionForm | Mapping[str, Any],
        visitor_token: str | None = None,
    ) -> ReferralSubmission:
        """Capture a referral form.

        Form data is validated first, then the referral code; nothing is
        written unless both pass.

        Args:
            code: Referral code the prospect arrived with
            form: Form data
            visitor_token: Tracking context of the prospect, if known

        Returns:
            Created submission

        Raises:
            SubmissionValidationError: invalid form data
            InvalidReferralCode: unknown code
        """
        data = validate_form(form)

        with self.db.session() as session:
            referral_code = self.funnel.resolve_code(session, code)
            referrer = session.get(Investor, referral_code.investor_id)

            referral = self.funnel.referral_for_submission(
                session, referral_code, email=data["email"], visitor_token=visitor_token
            )
            self.funnel.mark_submitted(referral, data["email"], data["full_name"])

            submission = ReferralSubmission(
                referral_id=referral.id,
                referral_code=referral_code.code,
                referrer_id=referral_code.investor_id,
                referrer_name=referrer.name if referrer else None,
                referrer_email=referrer.email if referrer else None,
                status=SubmissionStatus.PENDING,
                viewed=False,
                **data,
            )
            session.add(submission)
            session.flush()

        self.feed.publish("referrals", ChangeType.UPDATE, [referral.id])
        self.feed.publish("referral_submissions", ChangeType.INSERT, [submission.id])
        self.logger.info(
            "referral_submission_created",
            submission_id=submission.id,
            referral_id=referral.id,
            referrer_id=submission.referrer_id,
            code=submission.referral_code,
        )
        return submission

    # ------------------------------------------------------------------
    # Triage
    # ------------------------------------------------------------------

    def list_submissions(
        self,
        limit: int | None = None,
        offset: int = 0,
        status: SubmissionStatus | str | None = None,
        search: str | None = None,
    ) -> list[ReferralSubmission]:
        """Submissions, newest first.

        Args:
            limit: Page size (default settings.submissions_page_size, max 500)
            offset: Rows to skip
            status: Only this triage status
            search: Case-insensitive match on prospect name/email, referrer
                name or referral code
        """
        limit = settings.submissions_page_size if limit is None else limit
        limit = max(1, min(int(limit), MAX_PAGE_SIZE))
        offset = max(0, int(offset))

        query = select(ReferralSubmission)
        if status is not None:
            query = query.where(ReferralSubmission.status == coerce_status(SubmissionStatus, status))
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(ReferralSubmission.full_name).like(pattern),
                    func.lower(ReferralSubmission.email).like(pattern),
                    func.lower(ReferralSubmission.referrer_name).like(pattern),
                    func.lower(ReferralSubmission.referral_code).like(pattern),
                )
            )
        query = query.order_by(
            ReferralSubmission.created_at.desc(), ReferralSubmission.id.desc()
        ).limit(limit).offset(offset)

        with self.db.session() as session:
            return list(session.scalars(query))

    def get_submission(self, submission_id: int) -> ReferralSubmission | None:
        with self.db.session() as session:
            return session.get(ReferralSubmission, submission_id)

    def mark_viewed(self, submission_id: int) -> bool:
        """Latch one submission as viewed.

        Returns:
            False if the submission does not exist, True otherwise (also
            when it was already viewed)
        """
        if self.ledger.is_viewed(submission_id) is None:
            return False
        self.ledger.mark_viewed([submission_id])
        return True

    def unviewed_count(self) -> int:
        return self.ledger.unviewed_count()

    def update_status(
        self,
        submission_id: int,
        status: SubmissionStatus | str,
    ) -> ReferralSubmission:
        """Move a submission to a triage status.

        Any triage status may follow any other; the parent referral is not
        affected.

        Raises:
            TypeError: status is not a SubmissionStatus value
            ValueError: status is not a triage target
            SubmissionNotFound: unknown submission
        """
        status = coerce_status(SubmissionStatus, status)
        if status not in TRIAGE_STATUSES:
            raise ValueError(
                f"Submissions can be moved to {', '.join(sorted(s.value for s in TRIAGE_STATUSES))}, not {status.value}"
            )

        with self.db.session() as session:
            submission = session.get(ReferralSubmission, submission_id)
            if submission is None:
                raise SubmissionNotFound(f"Submission {submission_id} not found")
            previous = submission.status
            submission.status = status
            submission.updated_at = utcnow()
            session.flush()

        self.feed.publish("referral_submissions", ChangeType.UPDATE, [submission.id])
        self.logger.info(
            "referral_submission_status_updated",
            submission_id=submission.id,
            previous=previous.value,
            status=status.value,
        )
        return submission

    def update_notes(self, submission_id: int, notes: str | None) -> ReferralSubmission:
        """Replace the admin notes of a submission.

        Raises:
            SubmissionNotFound: unknown submission
        """
        with self.db.session() as session:
            submission = session.get(ReferralSubmission, submission_id)
            if submission is None:
                raise SubmissionNotFound(f"Submission {submission_id} not found")
            submission.admin_notes = (notes or "").strip() or None
            submission.updated_at = utcnow()
            session.flush()

        self.feed.publish("referral_submissions", ChangeType.UPDATE, [submission.id])
        self.logger.info("referral_submission_notes_updated", submission_id=submission.id)
        return submission
