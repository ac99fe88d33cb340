"""Submission form validation and normalization."""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

import phonenumbers
from phonenumbers import NumberParseException

from wtx.logging_config import get_logger
from wtx.referral.exceptions import SubmissionValidationError
from wtx.referral.schemas import ReferralSubmissionForm
from wtx.settings import settings

logger = get_logger(__name__)

CONTACT_METHODS = ("email", "phone", "either")
DEFAULT_CONTACT_METHOD = "email"

OPTIONAL_TEXT_FIELDS = (
    "company",
    "address",
    "city",
    "state",
    "zip_code",
    "country",
    "investment_interest",
    "message",
)

REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields (Name and Email)"
INVALID_EMAIL_MESSAGE = "Please enter a valid email address"


def normalize_phone(phone: str | None, region: str | None = None) -> str | None:
    """Normalize phone number to E.164 format.

    Args:
        phone: Raw phone number
        region: Country code used when the number has no + prefix

    Returns:
        Normalized phone in E.164 format, or None if it cannot be parsed
    """
    if not phone:
        return None

    region = region or settings.default_phone_region
    try:
        parsed = phonenumbers.parse(phone, region)
    except NumberParseException as e:
        logger.debug("phone_parse_error", phone=phone, error=str(e))
        return None

    if not phonenumbers.is_valid_number(parsed):
        logger.debug("phone_invalid", phone=phone, region=region)
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _clean_amount(value: Any) -> Decimal | None:
    # Absent means unspecified; 0 is a real amount and is kept
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise SubmissionValidationError("Investment amount must be a number", field="investment_amount")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise SubmissionValidationError("Investment amount must be a number", field="investment_amount")
    if not amount.is_finite() or amount < 0:
        raise SubmissionValidationError("Investment amount cannot be negative", field="investment_amount")
    return amount


def validate_form(form: ReferralSubmissionForm | Mapping[str, Any]) -> dict[str, Any]:
    """Validate and normalize submission form data.

    Args:
        form: Form model or plain mapping

    Returns:
        Column values for a ReferralSubmission

    Raises:
        SubmissionValidationError: on the first invalid field
    """
    if isinstance(form, ReferralSubmissionForm):
        data = form.model_dump()
    else:
        data = dict(form or {})

    full_name = _clean_text(data.get("full_name"))
    email = _clean_text(data.get("email"))
    if not full_name or not email:
        raise SubmissionValidationError(
            REQUIRED_FIELDS_MESSAGE, field="full_name" if not full_name else "email"
        )
    if "@" not in email:
        raise SubmissionValidationError(INVALID_EMAIL_MESSAGE, field="email")

    contact_method = (_clean_text(data.get("preferred_contact_method")) or DEFAULT_CONTACT_METHOD).lower()
    if contact_method not in CONTACT_METHODS:
        raise SubmissionValidationError(
            f"Preferred contact method must be one of: {', '.join(CONTACT_METHODS)}",
            field="preferred_contact_method",
        )

    raw_phone = _clean_text(data.get("phone"))
    phone = normalize_phone(raw_phone) or raw_phone

    cleaned = {
        "full_name": full_name,
        "email": email,
        "phone": phone,
        "investment_amount": _clean_amount(data.get("investment_amount")),
        "preferred_contact_method": contact_method,
    }
    for field in OPTIONAL_TEXT_FIELDS:
        cleaned[field] = _clean_text(data.get(field))
    return cleaned
