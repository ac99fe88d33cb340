"""Request and result shapes for the referral pipeline."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class ReferralSubmissionForm(BaseModel):
    """Intake form a referred prospect fills in.

    Only full_name and email are required; they are checked by the intake
    validator rather than here so every caller gets the same messages.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = ""
    email: str = ""
    phone: str | None = None
    company: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    investment_amount: Decimal | None = None
    investment_interest: str | None = None
    preferred_contact_method: str | None = None
    message: str | None = None


class OperationResult(BaseModel):
    """Outcome of a gateway call. Failures carry a message, never raise."""
    success: bool
    error: str | None = None
    # invalid_input | invalid_code | not_found | conflict | backend
    error_kind: str | None = None


class ReferralResult(OperationResult):
    referrer_id: int | None = None
    referral_id: int | None = None


class SubmissionResult(OperationResult):
    submission_id: int | None = None
