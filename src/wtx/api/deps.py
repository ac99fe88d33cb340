"""FastAPI dependencies."""

from datetime import timedelta

from fastapi import HTTPException, Request, Response

from wtx.investments.service import InvestmentRequestService, investment_request_service
from wtx.referral.gateway import ReferralGateway, referral_gateway
from wtx.referral.schemas import OperationResult
from wtx.referral.session import CookieSessionStore, ReferralSession
from wtx.settings import settings

# HTTP status for each failed-result kind
STATUS_BY_ERROR_KIND = {
    "invalid_input": 400,
    "invalid_code": 404,
    "not_found": 404,
    "conflict": 409,
    "backend": 503,
}


def get_gateway() -> ReferralGateway:
    return referral_gateway


def get_investment_requests() -> InvestmentRequestService:
    return investment_request_service


def get_referral_session(request: Request, response: Response) -> ReferralSession:
    """Visitor's referral context, carried in cookies."""
    store = CookieSessionStore(
        request.cookies,
        response,
        secure=settings.env == "production",
    )
    return ReferralSession(
        store,
        storage_key=settings.referral_storage_key,
        ttl=timedelta(days=settings.referral_session_ttl_days),
    )


def raise_for_result(result: OperationResult) -> None:
    """Turn a failed gateway result into an HTTPException."""
    if result.success:
        return
    raise HTTPException(
        status_code=STATUS_BY_ERROR_KIND.get(result.error_kind, 400),
        detail=result.error or "Request failed",
    )
