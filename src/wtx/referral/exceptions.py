"""Referral pipeline errors."""


class ReferralError(Exception):
    """Referral operation error."""
    pass


class InvalidReferralCode(ReferralError):
    """The referral code does not belong to any referrer."""

    def __init__(self, code: str | None):
        self.code = code
        super().__init__(f"Invalid referral code: {code!r}")


class InvestorNotFound(ReferralError):
    """No investor with the given id."""
    pass


class ReferralNotFound(ReferralError):
    """No referral with the given id."""
    pass


class SubmissionNotFound(ReferralError):
    """No referral submission with the given id."""
    pass


class SubmissionValidationError(ReferralError):
    """Form data rejected before anything is written."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)
