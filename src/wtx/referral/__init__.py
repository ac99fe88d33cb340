"""Referral pipeline for WTX Energy.

Referrer gets a code -> visitor clicks <origin>?ref=<code> -> visitor leaves
contact details or the full intake form -> admins triage the submission.
"""

from wtx.referral.exceptions import (
    InvalidReferralCode,
    ReferralError,
    SubmissionNotFound,
    SubmissionValidationError,
)
from wtx.referral.models import (
    Referral,
    ReferralCode,
    ReferralStatus,
    ReferralSubmission,
    SubmissionStatus,
)

__all__ = [
    "InvalidReferralCode",
    "Referral",
    "ReferralCode",
    "ReferralError",
    "ReferralStatus",
    "ReferralSubmission",
    "SubmissionNotFound",
    "SubmissionStatus",
    "SubmissionValidationError",
]
