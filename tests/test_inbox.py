import pytest

from wtx.notifications.inbox import AdminInbox

JANE = {"full_name": "Jane Doe", "email": "jane@example.com"}


@pytest.fixture
def submissions(intake, code):
    return [
        intake.submit(code, {"full_name": f"Prospect {n}", "email": f"prospect{n}@example.com"})
        for n in range(3)
    ]


@pytest.fixture
def inbox(gateway, intake, feed):
    viewed = []
    inbox = AdminInbox(
        fetch=gateway.get_referral_submissions,
        ledger=intake.ledger,
        feed=feed,
        on_viewed=viewed.append,
    )
    inbox.viewed_counts = viewed
    yield inbox
    inbox.close()


def test_opening_marks_page_viewed(inbox, intake, submissions):
    assert intake.unviewed_count() == 3

    items = inbox.open()

    assert len(items) == 3
    assert all(item["viewed"] and item["viewed_at"] is not None for item in items)
    assert intake.unviewed_count() == 0
    assert inbox.viewed_counts == [3]


def test_reopening_marks_only_new_rows(inbox, intake, code, submissions):
    inbox.open()
    inbox.close()

    intake.submit(code, JANE)
    inbox.open()

    assert inbox.viewed_counts == [3, 1]
    assert intake.unviewed_count() == 0


def test_changes_trigger_full_refetch(inbox, intake, code, feed):
    inbox.open()
    refreshes = inbox.refresh_count

    submission = intake.submit(code, JANE)

    assert inbox.refresh_count == refreshes + 1
    assert [item["id"] for item in inbox.items] == [submission.id]
    # Only opening the inbox marks rows viewed
    assert intake.unviewed_count() == 1


def test_status_change_refreshes_page(inbox, intake, submissions):
    inbox.open()

    intake.update_status(submissions[0].id, "contacted")

    row = next(item for item in inbox.items if item["id"] == submissions[0].id)
    assert row["status"] == "contacted"


def test_closed_inbox_stops_listening(inbox, intake, code, feed):
    inbox.open()
    inbox.close()
    refreshes = inbox.refresh_count

    intake.submit(code, JANE)

    assert not inbox.is_open
    assert inbox.refresh_count == refreshes
    assert feed.subscriber_count("referral_submissions") == 0


def test_failed_fetch_leaves_page_stale(intake, feed):
    def broken():
        raise RuntimeError("backend down")

    inbox = AdminInbox(fetch=broken, ledger=intake.ledger, feed=feed)

    with pytest.raises(RuntimeError):
        inbox.refresh()
    assert inbox.stale is True
    assert inbox.items == []


def test_context_manager(gateway, intake, feed, submissions):
    with AdminInbox(fetch=gateway.get_referral_submissions, ledger=intake.ledger, feed=feed) as inbox:
        assert inbox.is_open
        assert len(inbox.items) == 3
    assert not inbox.is_open
    assert feed.subscriber_count("referral_submissions") == 0
