"""In-process change notifications keyed by table name.

Writers publish after their transaction commits; admin list views subscribe
and refetch their whole page on any event. Events carry no row data, so a
subscriber can never patch a cached list from them.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from wtx.logging_config import get_logger
from wtx.storage.models import utcnow

logger = get_logger(__name__)


class ChangeType(str, Enum):
    """Kind of row change."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change on a table."""
    table: str
    change: ChangeType
    row_ids: tuple[int, ...] = ()
    occurred_at: datetime = field(default_factory=utcnow)


Listener = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by ChangeFeed.subscribe."""

    def __init__(self, feed: "ChangeFeed", table: str, listener: Listener):
        self._feed = feed
        self.table = table
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self)
            self.active = False


class ChangeFeed:
    """Fan-out of table change events to subscribed listeners."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: dict[str, list[Subscription]] = {}

    def subscribe(self, table: str, listener: Listener) -> Subscription:
        """Call listener on every insert/update/delete event for table."""
        subscription = Subscription(self, table, listener)
        with self._lock:
            self._subscriptions.setdefault(table, []).append(subscription)
        logger.debug("change_feed_subscribed", table=table)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            listeners = self._subscriptions.get(subscription.table, [])
            if subscription in listeners:
                listeners.remove(subscription)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(table, []))

    def publish(
        self,
        table: str,
        change: ChangeType,
        row_ids: tuple[int, ...] | list[int] = (),
    ) -> ChangeEvent:
        """Deliver an event to the table's listeners, synchronously.

        A failing listener is logged and does not stop delivery to the
        others; the change it reports has already been committed.
        """
        event = ChangeEvent(table=table, change=ChangeType(change), row_ids=tuple(row_ids))
        with self._lock:
            listeners = list(self._subscriptions.get(table, []))

        for subscription in listeners:
            try:
                subscription.listener(event)
            except Exception:
                logger.exception(
                    "change_listener_failed",
                    table=table,
                    change=event.change.value,
                )
        return event


# Process-wide feed
change_feed = ChangeFeed()
