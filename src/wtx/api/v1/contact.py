"""Generic contact form, with best-effort referral attribution."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict

from wtx.api.deps import get_gateway, get_referral_session
from wtx.api.rate_limit import FORM_LIMIT, limiter
from wtx.logging_config import get_logger
from wtx.referral.gateway import ReferralGateway
from wtx.referral.session import ReferralSession

logger = get_logger(__name__)

router = APIRouter(tags=["contact"])


class ContactRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    email: str
    company: str | None = None
    message: str | None = None


class ContactResponse(BaseModel):
    success: bool
    attribution_scheduled: bool


@router.post("/contact", response_model=ContactResponse)
@limiter.limit(FORM_LIMIT)
def submit_contact(
    request: Request,
    body: ContactRequest,
    background_tasks: BackgroundTasks,
    gateway: ReferralGateway = Depends(get_gateway),
    referral_session: ReferralSession = Depends(get_referral_session),
):
    """Accept a contact message.

    If the visitor arrived through a referral link, their email and name are
    attached to that referral after the response is sent. The stored code is
    dropped either way; attribution failures never fail the contact form.
    """
    if not body.name or not body.email or "@" not in body.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name and a valid email are required",
        )

    logger.info("contact_message_received", has_company=bool(body.company))

    code, visitor_token = referral_session.take()
    if code:
        background_tasks.add_task(
            gateway.attribute_contact_best_effort,
            code,
            body.email,
            body.name,
            visitor_token,
        )

    return ContactResponse(success=True, attribution_scheduled=bool(code))
