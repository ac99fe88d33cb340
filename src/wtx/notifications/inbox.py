"""Admin inbox list views backed by the change feed.

An inbox holds one page of rows. Any insert, update or delete on its table
marks the page stale and triggers a full refetch; events are never applied
to the cached page.
"""

from typing import Any, Callable

from wtx.events import ChangeEvent, ChangeFeed, Subscription, change_feed
from wtx.logging_config import get_logger
from wtx.notifications.ledger import ViewedLedger

logger = get_logger(__name__)

Fetcher = Callable[[], list[dict[str, Any]]]


class AdminInbox:
    """Live list of rows for an admin tab, marking them viewed on open."""

    def __init__(
        self,
        fetch: Fetcher,
        ledger: ViewedLedger,
        feed: ChangeFeed | None = None,
        on_viewed: Callable[[int], None] | None = None,
    ):
        """Initialize inbox.

        Args:
            fetch: Returns the current page as dicts with `id` and `viewed`
            ledger: Ledger of the table the page is read from
            feed: Change feed to subscribe to
            on_viewed: Called with the number of rows marked viewed on open,
                e.g. to refresh a badge counter
        """
        self.fetch = fetch
        self.ledger = ledger
        self.table = ledger.table
        self.feed = feed or change_feed
        self.on_viewed = on_viewed
        self.items: list[dict[str, Any]] = []
        self.stale = True
        self.refresh_count = 0
        self._subscription: Subscription | None = None
        self._marked_on_open = False

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def open(self) -> list[dict[str, Any]]:
        """Subscribe, load the page and mark its unviewed rows as viewed.

        Rows are marked once per open; reopening marks anything new.
        """
        if not self.is_open:
            self._subscription = self.feed.subscribe(self.table, self._on_change)
            self._marked_on_open = False

        self.refresh()

        if not self._marked_on_open:
            unviewed = [item["id"] for item in self.items if not item.get("viewed")]
            marked = self.ledger.mark_viewed(unviewed) if unviewed else 0
            self._marked_on_open = True
            if marked:
                logger.info("inbox_marked_viewed", table=self.table, count=marked)
                if self.on_viewed:
                    self.on_viewed(marked)

        return self.items

    def refresh(self) -> list[dict[str, Any]]:
        """Refetch the whole page."""
        self.stale = True
        self.items = self.fetch()
        self.stale = False
        self.refresh_count += 1
        return self.items

    def _on_change(self, event: ChangeEvent) -> None:
        logger.debug(
            "inbox_change_received",
            table=event.table,
            change=event.change.value,
            rows=len(event.row_ids),
        )
        self.refresh()

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def __enter__(self) -> "AdminInbox":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
