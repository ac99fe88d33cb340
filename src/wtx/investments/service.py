"""Investment requests and their admin unread counter."""

from collections.abc import Mapping
from typing import Any, Iterable

from sqlalchemy import insert, select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import undefer_group

from wtx.events import ChangeFeed, ChangeType, change_feed
from wtx.logging_config import get_logger
from wtx.notifications.ledger import ViewedLedger, is_missing_viewed_column
from wtx.storage.db import Database, db
from wtx.storage.models import VIEWED_GROUP, InvestmentRequest
from wtx.utils.normalize import EMAIL_FIELDS, NAME_FIELDS, pick_field

logger = get_logger(__name__)

PENDING = "pending"


class InvestmentRequestError(Exception):
    """Investment request operation error."""
    pass


class InvestmentRequestService:
    """Captures investment requests and badges the admin notifications tab."""

    def __init__(self, database: Database | None = None, feed: ChangeFeed | None = None):
        self.db = database or db
        self.feed = feed or change_feed
        self.ledger = ViewedLedger(
            InvestmentRequest, status=PENDING, database=self.db, feed=self.feed
        )
        self.logger = get_logger(__name__)

    def create_request(self, payload: Mapping[str, Any]) -> InvestmentRequest:
        """Create a pending request.

        The investor's email and name are read with the shared field
        priority lists, so legacy payloads (`investor_email`, `EMAIL`, ...)
        are accepted as well. On a database without the viewed columns the
        row is written without them.

        Raises:
            InvestmentRequestError: missing email, name or project
        """
        email = str(pick_field(payload, EMAIL_FIELDS) or "").strip()
        name = str(pick_field(payload, NAME_FIELDS) or "").strip()
        project_name = str(payload.get("project_name") or "").strip()
        if not email or "@" not in email:
            raise InvestmentRequestError("A valid investor email is required")
        if not name or not project_name:
            raise InvestmentRequestError("Investor name and project are required")

        values = {
            "investor_email": email,
            "investor_name": name,
            "company": payload.get("company") or None,
            "project_name": project_name,
            "units": payload.get("units"),
            "message": payload.get("message") or None,
            "preferred_contact": payload.get("preferred_contact") or None,
            "status": PENDING,
        }

        try:
            with self.db.session() as session:
                request = InvestmentRequest(viewed=False, viewed_at=None, **values)
                session.add(request)
                session.flush()
        except DBAPIError as exc:
            if not is_missing_viewed_column(exc):
                raise
            self.logger.warning("viewed_column_missing_insert_fallback", error=str(exc.orig))
            with self.db.session() as session:
                request_id = session.execute(
                    insert(InvestmentRequest.__table__)
                    .values(**values)
                    .returning(InvestmentRequest.__table__.c.id)
                ).scalar_one()
                request = session.get(InvestmentRequest, request_id)

        self.feed.publish("investment_requests", ChangeType.INSERT, [request.id])
        self.logger.info("investment_request_created", request_id=request.id, project=project_name)
        return request

    def _fetch(self, query) -> list[dict[str, Any]]:
        """Run a request query, with viewed state when the columns exist."""
        try:
            with self.db.session() as session:
                requests = session.scalars(query.options(undefer_group(VIEWED_GROUP))).all()
                return [request.to_dict() for request in requests]
        except DBAPIError as exc:
            if not is_missing_viewed_column(exc):
                raise
            self.logger.warning("viewed_column_missing_list_fallback", error=str(exc.orig))

        with self.db.session() as session:
            return [request.to_dict() for request in session.scalars(query).all()]

    def list_pending(self, limit: int = 100) -> list[dict[str, Any]]:
        return self._fetch(
            select(InvestmentRequest)
            .where(InvestmentRequest.status == PENDING)
            .order_by(InvestmentRequest.created_at.desc(), InvestmentRequest.id.desc())
            .limit(limit)
        )

    def list_for_investor(self, investor_email: str) -> list[dict[str, Any]]:
        """An investor's own requests, newest first; empty on failure."""
        try:
            return self._fetch(
                select(InvestmentRequest)
                .where(InvestmentRequest.investor_email == investor_email)
                .order_by(InvestmentRequest.created_at.desc(), InvestmentRequest.id.desc())
            )
        except SQLAlchemyError as exc:
            self.logger.error("investor_requests_fetch_failed", error=str(exc))
            return []

    def unviewed_count(self) -> int:
        """Pending requests not yet viewed; 0 if the count fails."""
        try:
            return self.ledger.unviewed_count()
        except SQLAlchemyError as exc:
            self.logger.error("unviewed_investment_requests_count_failed", error=str(exc))
            return 0

    def mark_viewed(self, request_ids: Iterable[int] | None = None) -> int:
        """Mark the given requests, or every unviewed pending one, as viewed.

        Returns:
            Number of rows marked; 0 on failure
        """
        try:
            return self.ledger.mark_viewed(request_ids)
        except SQLAlchemyError as exc:
            self.logger.error("mark_investment_requests_viewed_failed", error=str(exc))
            return 0


# Singleton instance
investment_request_service = InvestmentRequestService()
