"""Referral API v1 endpoints: referrer link and visitor funnel."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from wtx.api.deps import get_gateway, get_referral_session, raise_for_result
from wtx.api.rate_limit import CLICK_LIMIT, FORM_LIMIT, limiter
from wtx.logging_config import get_logger
from wtx.referral.gateway import ReferralGateway
from wtx.referral.registry import build_link
from wtx.referral.schemas import ReferralResult, ReferralSubmissionForm, SubmissionResult
from wtx.referral.session import ReferralSession

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["referral"])


# ==================== MODELS ====================


class ReferralCodeResponse(BaseModel):
    """Response with investor's referral code."""
    code: str
    link: str


class ReferralStatsResponse(BaseModel):
    """Referral counts per funnel status."""
    total_referrals: int
    pending: int
    clicked: int
    submitted: int
    active_investors: int


class TrackClickRequest(BaseModel):
    """Request to track a referral link click."""
    code: str


class SubmitReferralRequest(ReferralSubmissionForm):
    """Referral form plus the code from the link."""
    code: str


# ==================== ENDPOINTS ====================


def _code_or_503(gateway: ReferralGateway, investor_id: int) -> str:
    code = gateway.get_or_create_referral_code(investor_id)
    if code is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Referral link unavailable",
        )
    return code


@router.get("/code/{investor_id}", response_model=ReferralCodeResponse)
def get_referral_code(investor_id: int, gateway: ReferralGateway = Depends(get_gateway)):
    """Get an investor's referral code.

    Creates a new code if the investor doesn't have one.
    """
    code = _code_or_503(gateway, investor_id)
    return ReferralCodeResponse(code=code, link=build_link(code))


@router.get("/share/{investor_id}")
def get_shareable_link(
    investor_id: int,
    referrer_name: str = "A friend",
    gateway: ReferralGateway = Depends(get_gateway),
):
    """Referral link with a ready-to-send invitation email."""
    code = _code_or_503(gateway, investor_id)
    link = build_link(code)

    return {
        "link": link,
        "code": code,
        "email_subject": "Join WTX Energy - Investment Opportunity",
        "email_body": f"""
Hi there,

I wanted to share an exciting investment opportunity with you through WTX Energy, a leading platform for crude oil investments.

I've been investing with them and thought you might be interested. You can learn more and get started using my referral link:

{link}

This link will help you get started and I'll be able to track your progress. If you have any questions, feel free to reach out!

Best regards,
{referrer_name}
""".strip(),
    }


@router.get("/stats/{investor_id}", response_model=ReferralStatsResponse)
def get_referral_stats(investor_id: int, gateway: ReferralGateway = Depends(get_gateway)):
    stats = gateway.get_referral_stats(investor_id)
    if stats is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Referral stats unavailable")
    return ReferralStatsResponse(**stats)


@router.get("/referrals/{investor_id}")
def get_referrals(investor_id: int, gateway: ReferralGateway = Depends(get_gateway)):
    """Investor's referrals, newest first, with linked submission status."""
    return gateway.get_referrals(investor_id)


@router.post("/track-click", response_model=ReferralResult)
@limiter.limit(CLICK_LIMIT)
def track_referral_click(
    request: Request,
    body: TrackClickRequest,
    gateway: ReferralGateway = Depends(get_gateway),
    referral_session: ReferralSession = Depends(get_referral_session),
):
    """Track a click on a referral link.

    Called when someone lands on <origin>?ref=CODE. An invalid code is a
    404; the visitor must not be shown the referral form.
    """
    visitor_token = referral_session.ensure_visitor_token()
    result = gateway.track_referral_click(body.code, visitor_token=visitor_token)
    raise_for_result(result)

    referral_session.remember(body.code)
    return result


@router.post("/submit", response_model=SubmissionResult, status_code=status.HTTP_201_CREATED)
@limiter.limit(FORM_LIMIT)
def submit_referral_form(
    request: Request,
    body: SubmitReferralRequest,
    gateway: ReferralGateway = Depends(get_gateway),
    referral_session: ReferralSession = Depends(get_referral_session),
):
    """Submit the referral intake form."""
    form = ReferralSubmissionForm(**body.model_dump(exclude={"code"}))
    result = gateway.submit_referral_form(
        body.code, form, visitor_token=referral_session.visitor_token
    )
    raise_for_result(result)
    return result
