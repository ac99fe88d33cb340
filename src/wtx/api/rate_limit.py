"""Per-client request limits for the public referral endpoints.

Clicks fire on every landing-page visit and get a wider budget than the
form posts (referral intake, contact).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from wtx.settings import settings

CLICK_LIMIT = settings.rate_limit_click
FORM_LIMIT = settings.rate_limit_form


def limits_enabled() -> bool:
    if settings.rate_limit_enabled is not None:
        return settings.rate_limit_enabled
    return settings.env == "production"


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    storage_uri=settings.rate_limit_storage_uri,
    enabled=limits_enabled(),
)
