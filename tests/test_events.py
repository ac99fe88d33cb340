from wtx.events import ChangeFeed, ChangeType


def test_listeners_receive_table_events():
    feed = ChangeFeed()
    received = []
    feed.subscribe("referrals", received.append)

    feed.publish("referrals", ChangeType.INSERT, [1])
    feed.publish("referral_submissions", ChangeType.INSERT, [2])

    assert len(received) == 1
    assert received[0].table == "referrals"
    assert received[0].row_ids == (1,)


def test_failing_listener_does_not_block_others():
    feed = ChangeFeed()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    feed.subscribe("referrals", broken)
    feed.subscribe("referrals", received.append)

    feed.publish("referrals", ChangeType.UPDATE, [1])

    assert len(received) == 1


def test_unsubscribe():
    feed = ChangeFeed()
    received = []
    subscription = feed.subscribe("referrals", received.append)

    subscription.unsubscribe()
    subscription.unsubscribe()
    feed.publish("referrals", "DELETE", [1])

    assert received == []
    assert feed.subscriber_count("referrals") == 0
