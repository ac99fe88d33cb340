"""Investment request endpoints (investor side)."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from wtx.api.deps import get_investment_requests
from wtx.investments.service import InvestmentRequestError, InvestmentRequestService

router = APIRouter(prefix="/investment-requests", tags=["investment-requests"])


class CreateInvestmentRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")

    project_name: str
    company: str | None = None
    units: int | None = Field(default=None, ge=1)
    message: str | None = None
    preferred_contact: str | None = None


@router.post("", status_code=status.HTTP_201_CREATED)
def create_investment_request(
    body: CreateInvestmentRequest,
    service: InvestmentRequestService = Depends(get_investment_requests),
):
    """Request to join a project.

    The investor's email and name may come as email/name or any of the
    legacy aliases (investor_email, full_name, ...).
    """
    try:
        created = service.create_request(body.model_dump())
    except InvestmentRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return created.to_dict()


@router.get("")
def list_investment_requests(
    email: str = Query(..., min_length=3),
    service: InvestmentRequestService = Depends(get_investment_requests),
):
    """An investor's own requests, newest first."""
    return service.list_for_investor(email)
