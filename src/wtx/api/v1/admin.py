"""Admin endpoints: referral submission triage and notification badges."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from wtx.api.deps import get_gateway, get_investment_requests, raise_for_result
from wtx.investments.service import InvestmentRequestService
from wtx.referral.gateway import ReferralGateway
from wtx.referral.schemas import OperationResult, ReferralResult

router = APIRouter(prefix="/admin", tags=["admin"])


# ==================== MODELS ====================


class CountResponse(BaseModel):
    count: int


class StatusUpdateRequest(BaseModel):
    status: str


class NotesUpdateRequest(BaseModel):
    admin_notes: str | None = None


class MarkViewedRequest(BaseModel):
    """Rows to mark; omitted means every unviewed pending request."""
    ids: list[int] | None = None


class MarkViewedResponse(BaseModel):
    marked: int


# ==================== REFERRAL SUBMISSIONS ====================


@router.get("/referral-submissions")
def list_referral_submissions(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    status_filter: str | None = Query(None, alias="status"),
    search: str | None = None,
    gateway: ReferralGateway = Depends(get_gateway),
) -> list[dict[str, Any]]:
    """Submissions, newest first."""
    return gateway.get_referral_submissions(
        limit=limit, offset=offset, status=status_filter, search=search
    )


@router.get("/referral-submissions/unviewed-count", response_model=CountResponse)
def unviewed_referral_submissions(gateway: ReferralGateway = Depends(get_gateway)):
    return CountResponse(count=gateway.get_unviewed_referral_submissions_count())


@router.get("/referral-submissions/{submission_id}")
def get_referral_submission(submission_id: int, gateway: ReferralGateway = Depends(get_gateway)):
    submission = gateway.intake.get_submission(submission_id)
    if submission is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    return submission.to_dict()


@router.post("/referral-submissions/{submission_id}/viewed", response_model=OperationResult)
def mark_referral_submission_viewed(
    submission_id: int,
    gateway: ReferralGateway = Depends(get_gateway),
):
    result = gateway.mark_referral_submission_viewed(submission_id)
    raise_for_result(result)
    return result


@router.patch("/referral-submissions/{submission_id}/status", response_model=OperationResult)
def update_referral_submission_status(
    submission_id: int,
    body: StatusUpdateRequest,
    gateway: ReferralGateway = Depends(get_gateway),
):
    """Move a submission to reviewed, contacted, approved or rejected."""
    result = gateway.update_referral_submission_status(submission_id, body.status)
    raise_for_result(result)
    return result


@router.patch("/referral-submissions/{submission_id}/notes", response_model=OperationResult)
def update_referral_submission_notes(
    submission_id: int,
    body: NotesUpdateRequest,
    gateway: ReferralGateway = Depends(get_gateway),
):
    result = gateway.update_referral_submission_notes(submission_id, body.admin_notes)
    raise_for_result(result)
    return result


@router.post("/referrals/{referral_id}/activate", response_model=ReferralResult)
def activate_referral(referral_id: int, gateway: ReferralGateway = Depends(get_gateway)):
    """Record that a referred prospect became an investor."""
    result = gateway.mark_referral_active_investor(referral_id)
    raise_for_result(result)
    return result


# ==================== INVESTMENT REQUESTS ====================


@router.get("/investment-requests")
def list_pending_investment_requests(
    limit: int = Query(100, ge=1, le=500),
    service: InvestmentRequestService = Depends(get_investment_requests),
):
    return service.list_pending(limit=limit)


@router.get("/investment-requests/unviewed-count", response_model=CountResponse)
def unviewed_investment_requests(
    service: InvestmentRequestService = Depends(get_investment_requests),
):
    return CountResponse(count=service.unviewed_count())


@router.post("/investment-requests/viewed", response_model=MarkViewedResponse)
def mark_investment_requests_viewed(
    body: MarkViewedRequest | None = None,
    service: InvestmentRequestService = Depends(get_investment_requests),
):
    ids = body.ids if body is not None else None
    return MarkViewedResponse(marked=service.mark_viewed(ids))
