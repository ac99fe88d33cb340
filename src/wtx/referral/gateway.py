"""Result-shaped entry points to the referral pipeline.

Every call here logs failures and returns a value the UI can branch on
(`success`/`error`, None, an empty list or 0) instead of raising, so the
caller decides whether an error is fatal to the current view. Nothing is
retried; every operation is safe to re-invoke.
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from wtx.logging_config import get_logger
from wtx.referral.exceptions import (
    InvalidReferralCode,
    InvestorNotFound,
    ReferralError,
    ReferralNotFound,
    SubmissionNotFound,
    SubmissionValidationError,
)
from wtx.referral.funnel import ReferralFunnel
from wtx.referral.intake import SubmissionIntake
from wtx.referral.registry import ReferralCodeRegistry, build_link
from wtx.referral.schemas import (
    OperationResult,
    ReferralResult,
    ReferralSubmissionForm,
    SubmissionResult,
)
from wtx.referral.session import ReferralSession
from wtx.utils.normalize import normalize_investor_id

logger = get_logger(__name__)

INVALID_LINK_MESSAGE = "Invalid referral link. Please contact the person who shared this link."


def _failure(result_cls, exc: Exception, fallback: str):
    """Map an exception to a failed result of result_cls."""
    if isinstance(exc, InvalidReferralCode):
        return result_cls(success=False, error=INVALID_LINK_MESSAGE, error_kind="invalid_code")
    if isinstance(exc, (SubmissionValidationError, ValueError, TypeError)):
        return result_cls(success=False, error=str(exc), error_kind="invalid_input")
    if isinstance(exc, (SubmissionNotFound, ReferralNotFound, InvestorNotFound)):
        return result_cls(success=False, error=str(exc), error_kind="not_found")
    if isinstance(exc, ReferralError):
        return result_cls(success=False, error=str(exc), error_kind="conflict")
    return result_cls(success=False, error=fallback, error_kind="backend")


class ReferralGateway:
    """Client-facing referral operations."""

    def __init__(
        self,
        registry: ReferralCodeRegistry | None = None,
        funnel: ReferralFunnel | None = None,
        intake: SubmissionIntake | None = None,
    ):
        self.registry = registry or ReferralCodeRegistry()
        self.funnel = funnel or ReferralFunnel(registry=self.registry, database=self.registry.db)
        self.intake = intake or SubmissionIntake(
            funnel=self.funnel, database=self.funnel.db, feed=self.funnel.feed
        )
        self.logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Referrer
    # ------------------------------------------------------------------

    def get_or_create_referral_code(self, investor: int | str | Mapping[str, Any] | Any) -> str | None:
        """Referral code of an investor, issued on first request.

        Args:
            investor: Investor id, or a row carrying it (see
                wtx.utils.normalize.INVESTOR_ID_FIELDS)

        Returns:
            The code, or None when it cannot be obtained. None means "link
            unavailable", not "no referrals".
        """
        investor_id = normalize_investor_id(investor)
        if investor_id is None:
            self.logger.error("referral_code_invalid_investor", investor=repr(investor))
            return None
        try:
            return self.registry.get_or_create_code(investor_id).code
        except (ReferralError, SQLAlchemyError) as exc:
            self.logger.error("referral_code_unavailable", investor_id=investor_id, error=str(exc))
            return None

    def get_referral_link(self, investor: int | str | Mapping[str, Any] | Any) -> str | None:
        code = self.get_or_create_referral_code(investor)
        return build_link(code) if code else None

    def get_referral_stats(self, investor_id: int) -> dict[str, int] | None:
        try:
            return self.funnel.get_stats(investor_id)
        except SQLAlchemyError as exc:
            self.logger.error("referral_stats_failed", investor_id=investor_id, error=str(exc))
            return None

    def get_referrals(self, investor_id: int) -> list[dict[str, Any]]:
        try:
            return self.funnel.list_referrals(investor_id)
        except SQLAlchemyError as exc:
            self.logger.error("referrals_fetch_failed", investor_id=investor_id, error=str(exc))
            return []

    # ------------------------------------------------------------------
    # Visitor
    # ------------------------------------------------------------------

    def track_referral_click(self, code: str, visitor_token: str | None = None) -> ReferralResult:
        """Validate a referral link and record the click.

        A failed result means the link is invalid (or the store is down);
        the visitor must not be sent on to the submission form.
        """
        try:
            referral = self.funnel.track_click(code, visitor_token=visitor_token)
        except (ReferralError, SQLAlchemyError) as exc:
            self.logger.warning("referral_click_rejected", code=code, error=str(exc))
            return _failure(ReferralResult, exc, "Failed to track referral click")
        return ReferralResult(success=True, referrer_id=referral.referrer_id, referral_id=referral.id)

    def update_referral_contact(
        self,
        code: str,
        email: str,
        name: str | None,
        visitor_token: str | None = None,
    ) -> ReferralResult:
        try:
            referral = self.funnel.update_contact(code, email, name, visitor_token=visitor_token)
        except (ReferralError, ValueError, SQLAlchemyError) as exc:
            self.logger.warning("referral_contact_update_failed", code=code, error=str(exc))
            return _failure(ReferralResult, exc, "Failed to update referral contact")
        return ReferralResult(success=True, referrer_id=referral.referrer_id, referral_id=referral.id)

    def attribute_contact_best_effort(
        self,
        code: str | None,
        email: str,
        name: str | None,
        visitor_token: str | None = None,
    ) -> bool:
        """Best-effort side-attribution.

        Attaches a contact captured by some other flow (e.g. the generic
        contact form) to the visitor's referral. Any failure is logged and
        discarded: the action that triggered it must go on regardless.

        Returns:
            True if the referral was updated
        """
        if not code:
            return False
        try:
            result = self.update_referral_contact(code, email, name, visitor_token=visitor_token)
        except Exception:
            self.logger.exception("side_attribution_crashed", code=code)
            return False

        if not result.success:
            self.logger.info("side_attribution_skipped", code=code, error=result.error)
            return False
        self.logger.info("side_attribution_recorded", code=code, referrer_id=result.referrer_id)
        return True

    def attribute_session_best_effort(self, session: ReferralSession, email: str, name: str | None) -> bool:
        """Best-effort side-attribution from a visitor session.

        The stored code is dropped once the attribution succeeds.
        """
        code = session.referral_code
        attributed = self.attribute_contact_best_effort(
            code, email, name, visitor_token=session.visitor_token
        )
        if attributed:
            session.forget()
        return attributed

    def submit_referral_form(
        self,
        code: str,
        form: ReferralSubmissionForm | Mapping[str, Any],
        visitor_token: str | None = None,
    ) -> SubmissionResult:
        try:
            submission = self.intake.submit(code, form, visitor_token=visitor_token)
        except SubmissionValidationError as exc:
            return _failure(SubmissionResult, exc, "")
        except (ReferralError, SQLAlchemyError) as exc:
            self.logger.error("referral_submission_failed", code=code, error=str(exc))
            return _failure(SubmissionResult, exc, "Failed to submit referral form")
        return SubmissionResult(success=True, submission_id=submission.id)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def get_referral_submissions(
        self,
        limit: int = 100,
        offset: int = 0,
        status: str | None = None,
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        try:
            submissions = self.intake.list_submissions(limit=limit, offset=offset, status=status, search=search)
        except (ValueError, TypeError, SQLAlchemyError) as exc:
            self.logger.error("referral_submissions_fetch_failed", error=str(exc))
            return []
        return [submission.to_dict() for submission in submissions]

    def get_unviewed_referral_submissions_count(self) -> int:
        try:
            return self.intake.unviewed_count()
        except SQLAlchemyError as exc:
            self.logger.error("unviewed_submissions_count_failed", error=str(exc))
            return 0

    def mark_referral_submission_viewed(self, submission_id: int) -> OperationResult:
        try:
            found = self.intake.mark_viewed(submission_id)
        except SQLAlchemyError as exc:
            self.logger.error("mark_submission_viewed_failed", submission_id=submission_id, error=str(exc))
            return _failure(OperationResult, exc, "Failed to mark submission as viewed")
        if not found:
            return _failure(OperationResult, SubmissionNotFound(f"Submission {submission_id} not found"), "")
        return OperationResult(success=True)

    def update_referral_submission_status(self, submission_id: int, status: str) -> OperationResult:
        try:
            self.intake.update_status(submission_id, status)
        except (ReferralError, ValueError, TypeError) as exc:
            return _failure(OperationResult, exc, "")
        except SQLAlchemyError as exc:
            self.logger.error("submission_status_update_failed", submission_id=submission_id, error=str(exc))
            return _failure(OperationResult, exc, "Failed to update submission status")
        return OperationResult(success=True)

    def update_referral_submission_notes(self, submission_id: int, notes: str | None) -> OperationResult:
        try:
            self.intake.update_notes(submission_id, notes)
        except ReferralError as exc:
            return _failure(OperationResult, exc, "")
        except SQLAlchemyError as exc:
            self.logger.error("submission_notes_update_failed", submission_id=submission_id, error=str(exc))
            return _failure(OperationResult, exc, "Failed to update submission notes")
        return OperationResult(success=True)

    def mark_referral_active_investor(self, referral_id: int) -> ReferralResult:
        try:
            referral = self.funnel.mark_active_investor(referral_id)
        except (ReferralError, SQLAlchemyError) as exc:
            self.logger.warning("referral_activation_failed", referral_id=referral_id, error=str(exc))
            return _failure(ReferralResult, exc, "Failed to activate referral")
        return ReferralResult(success=True, referrer_id=referral.referrer_id, referral_id=referral.id)


# Singleton instance
referral_gateway = ReferralGateway()
