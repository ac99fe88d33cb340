"""Viewed-state ledger: unread counters and mark-as-viewed for admin inboxes.

The same pattern serves investment requests and referral submissions: a
nullable boolean `viewed` column (NULL counts as unviewed), a `viewed_at`
timestamp written on the first false -> true transition, and an optional
domain status filter.

Some deployed databases predate the `viewed` column. When the database
reports it missing, counting falls back to the status filter alone and
marking becomes a logged no-op; callers never see that error.
"""

from typing import Any, Iterable

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import DBAPIError

from wtx.events import ChangeFeed, ChangeType, change_feed
from wtx.logging_config import get_logger
from wtx.storage.db import Database, db
from wtx.storage.models import utcnow

logger = get_logger(__name__)


def is_missing_viewed_column(exc: BaseException) -> bool:
    """True if a database error says the `viewed` column does not exist."""
    message = str(getattr(exc, "orig", None) or exc).lower()
    return "column" in message and "viewed" in message


class ViewedLedger:
    """Unviewed counts and the one-way viewed latch for one table."""

    def __init__(
        self,
        model: Any,
        status: Any = None,
        fallback_status: Any = None,
        database: Database | None = None,
        feed: ChangeFeed | None = None,
    ):
        """Initialize ledger.

        Args:
            model: Mapped class with id, status, viewed and viewed_at
            status: Status every counted/marked row must have (None: any)
            fallback_status: Status counted in degraded mode when status is None
            database: Database (defaults to the global instance)
            feed: Change feed notified after rows are marked
        """
        self.model = model
        self.table = model.__tablename__
        self.status = status
        self.fallback_status = fallback_status
        self.db = database or db
        self.feed = feed or change_feed
        self.logger = get_logger(__name__).bind(table=self.table)

    def _unviewed(self):
        return or_(self.model.viewed.is_(None), self.model.viewed.is_(False))

    def _status_filters(self, status: Any) -> list:
        return [self.model.status == status] if status is not None else []

    def unviewed_count(self) -> int:
        """Number of rows not yet viewed (and matching the status filter).

        Raises:
            DBAPIError: database errors other than a missing viewed column
        """
        try:
            with self.db.session() as session:
                return session.scalar(
                    select(func.count(self.model.id)).where(
                        self._unviewed(), *self._status_filters(self.status)
                    )
                ) or 0
        except DBAPIError as exc:
            if not is_missing_viewed_column(exc):
                raise
            self.logger.warning("viewed_column_missing_count_fallback", error=str(exc.orig))

        fallback = self.status if self.status is not None else self.fallback_status
        with self.db.session() as session:
            return session.scalar(
                select(func.count(self.model.id)).where(*self._status_filters(fallback))
            ) or 0

    def mark_viewed(self, ids: Iterable[int] | None = None) -> int:
        """Latch rows as viewed.

        Args:
            ids: Rows to mark regardless of status; None marks every row
                that currently qualifies, an empty iterable marks nothing

        Returns:
            Number of rows that changed from unviewed to viewed
        """
        filters = [self._unviewed()]
        if ids is None:
            filters.extend(self._status_filters(self.status))
        else:
            ids = [int(row_id) for row_id in ids]
            if not ids:
                return 0
            filters.append(self.model.id.in_(ids))

        try:
            with self.db.session() as session:
                changed = session.execute(
                    update(self.model)
                    .where(*filters)
                    .values(viewed=True, viewed_at=utcnow())
                    .returning(self.model.id),
                    execution_options={"synchronize_session": False},
                ).scalars().all()
        except DBAPIError as exc:
            if not is_missing_viewed_column(exc):
                raise
            self.logger.warning("viewed_column_missing_mark_skipped", error=str(exc.orig))
            return 0

        if changed:
            self.feed.publish(self.table, ChangeType.UPDATE, changed)
            self.logger.info("rows_marked_viewed", count=len(changed))
        return len(changed)

    def is_viewed(self, row_id: int) -> bool | None:
        """Viewed flag of one row; None if the row does not exist."""
        try:
            with self.db.session() as session:
                row = session.execute(
                    select(self.model.id, self.model.viewed).where(self.model.id == row_id)
                ).first()
        except DBAPIError as exc:
            if not is_missing_viewed_column(exc):
                raise
            with self.db.session() as session:
                exists = session.scalar(select(self.model.id).where(self.model.id == row_id))
            return False if exists is not None else None

        if row is None:
            return None
        return bool(row.viewed)
