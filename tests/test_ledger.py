import pytest

from wtx.events import ChangeType
from wtx.investments.service import InvestmentRequestError, InvestmentRequestService
from wtx.notifications.ledger import ViewedLedger, is_missing_viewed_column
from wtx.storage.db import Database
from wtx.storage.models import InvestmentRequest

REQUEST = {"email": "jane@example.com", "name": "Jane Doe", "project_name": "Permian Lease 7", "units": 2}


def _set_status(database, request_id, status):
    with database.session() as session:
        session.get(InvestmentRequest, request_id).status = status


def test_create_request(investment_requests):
    request = investment_requests.create_request(REQUEST)

    assert request.status == "pending"
    assert request.viewed is False
    assert investment_requests.unviewed_count() == 1


def test_create_request_accepts_legacy_fields(investment_requests):
    request = investment_requests.create_request(
        {"EMAIL": "jane@example.com", "investor_name": "Jane Doe", "project_name": "Permian Lease 7"}
    )

    assert request.investor_email == "jane@example.com"
    assert request.investor_name == "Jane Doe"


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "Jane Doe", "project_name": "Permian Lease 7"},
        {"email": "jane", "name": "Jane Doe", "project_name": "Permian Lease 7"},
        {"email": "jane@example.com", "project_name": "Permian Lease 7"},
        {"email": "jane@example.com", "name": "Jane Doe"},
    ],
)
def test_create_request_validation(investment_requests, payload):
    with pytest.raises(InvestmentRequestError):
        investment_requests.create_request(payload)


def test_unviewed_count_ignores_decided_requests(investment_requests, database):
    pending = investment_requests.create_request(REQUEST)
    decided = investment_requests.create_request(REQUEST)
    _set_status(database, decided.id, "approved")

    assert investment_requests.unviewed_count() == 1
    assert [r["id"] for r in investment_requests.list_pending()] == [pending.id]


def test_null_viewed_counts_as_unviewed(investment_requests, database):
    request = investment_requests.create_request(REQUEST)
    with database.session() as session:
        session.get(InvestmentRequest, request.id).viewed = None

    assert investment_requests.unviewed_count() == 1


def test_mark_all_pending(investment_requests, database):
    investment_requests.create_request(REQUEST)
    investment_requests.create_request(REQUEST)
    decided = investment_requests.create_request(REQUEST)
    _set_status(database, decided.id, "rejected")

    assert investment_requests.mark_viewed() == 2
    assert investment_requests.unviewed_count() == 0
    assert investment_requests.ledger.is_viewed(decided.id) is False


def test_mark_explicit_ids_regardless_of_status(investment_requests, database):
    decided = investment_requests.create_request(REQUEST)
    _set_status(database, decided.id, "approved")

    assert investment_requests.mark_viewed([decided.id]) == 1
    assert investment_requests.ledger.is_viewed(decided.id) is True


def test_viewed_is_a_latch(investment_requests, database):
    request = investment_requests.create_request(REQUEST)

    assert investment_requests.mark_viewed([request.id]) == 1
    with database.session() as session:
        first_viewed_at = session.get(InvestmentRequest, request.id).viewed_at

    assert investment_requests.mark_viewed([request.id]) == 0
    assert investment_requests.mark_viewed([]) == 0
    with database.session() as session:
        assert session.get(InvestmentRequest, request.id).viewed_at == first_viewed_at


def test_mark_publishes_changed_rows(investment_requests, feed):
    events = []
    feed.subscribe("investment_requests", events.append)
    first = investment_requests.create_request(REQUEST)
    second = investment_requests.create_request(REQUEST)
    events.clear()

    investment_requests.mark_viewed([first.id])
    investment_requests.mark_viewed([first.id])

    assert len(events) == 1
    assert events[0].change == ChangeType.UPDATE
    assert events[0].row_ids == (first.id,)
    assert investment_requests.ledger.is_viewed(second.id) is False


def test_list_for_investor(investment_requests):
    investment_requests.create_request(REQUEST)
    investment_requests.create_request({**REQUEST, "email": "john@example.com"})

    requests = investment_requests.list_for_investor("jane@example.com")
    assert len(requests) == 1
    assert requests[0]["project_name"] == "Permian Lease 7"


@pytest.mark.parametrize(
    "message, expected",
    [
        ("no such column: investment_requests.viewed", True),
        ('column "viewed" does not exist', True),
        ("no such table: investment_requests", False),
        ("column project_name cannot be null", False),
    ],
)
def test_missing_column_detection(message, expected):
    assert is_missing_viewed_column(Exception(message)) is expected


# ==================== DEGRADED MODE ====================


@pytest.fixture
def legacy_database():
    """investment_requests as it was before the viewed columns existed."""
    database = Database("sqlite://")
    with database.engine.begin() as conn:
        conn.exec_driver_sql(
            """
            CREATE TABLE investment_requests (
                id INTEGER PRIMARY KEY,
                investor_email VARCHAR(255) NOT NULL,
                investor_name VARCHAR(255) NOT NULL,
                company VARCHAR(255),
                project_name VARCHAR(255) NOT NULL,
                units INTEGER,
                message TEXT,
                preferred_contact VARCHAR(20),
                status VARCHAR(20) NOT NULL,
                created_at DATETIME NOT NULL,
                updated_at DATETIME NOT NULL
            )
            """
        )
        for status in ("pending", "pending", "approved"):
            conn.exec_driver_sql(
                "INSERT INTO investment_requests "
                "(investor_email, investor_name, project_name, status, created_at, updated_at) "
                "VALUES ('jane@example.com', 'Jane Doe', 'Permian Lease 7', ?, '2026-01-01 00:00:00', '2026-01-01 00:00:00')",
                (status,),
            )
    try:
        yield database
    finally:
        database.dispose()


def test_degraded_count_falls_back_to_status(legacy_database, feed):
    ledger = ViewedLedger(InvestmentRequest, status="pending", database=legacy_database, feed=feed)

    assert ledger.unviewed_count() == 2


def test_degraded_mark_is_a_noop(legacy_database, feed):
    events = []
    feed.subscribe("investment_requests", events.append)
    service = InvestmentRequestService(database=legacy_database, feed=feed)

    assert service.mark_viewed() == 0
    assert service.mark_viewed([1]) == 0
    assert service.unviewed_count() == 2
    assert events == []


def test_degraded_is_viewed(legacy_database, feed):
    ledger = ViewedLedger(InvestmentRequest, status="pending", database=legacy_database, feed=feed)

    assert ledger.is_viewed(1) is False
    assert ledger.is_viewed(99) is None


def test_other_database_errors_propagate(feed):
    database = Database("sqlite://")
    ledger = ViewedLedger(InvestmentRequest, status="pending", database=database, feed=feed)

    from sqlalchemy.exc import OperationalError

    with pytest.raises(OperationalError):
        ledger.unviewed_count()
    database.dispose()


def test_degraded_create_request(legacy_database, feed):
    events = []
    feed.subscribe("investment_requests", events.append)
    service = InvestmentRequestService(database=legacy_database, feed=feed)

    request = service.create_request(REQUEST)

    assert request.id == 4
    assert request.status == "pending"
    assert request.to_dict()["viewed"] is None
    assert service.unviewed_count() == 3
    assert [e.row_ids for e in events] == [(4,)]


def test_degraded_list_pending(legacy_database, feed):
    service = InvestmentRequestService(database=legacy_database, feed=feed)

    pending = service.list_pending()

    assert sorted(r["id"] for r in pending) == [1, 2]
    assert all(r["viewed"] is None and r["viewed_at"] is None for r in pending)


def test_degraded_list_for_investor(legacy_database, feed):
    service = InvestmentRequestService(database=legacy_database, feed=feed)
    service.create_request(REQUEST)

    requests = service.list_for_investor("jane@example.com")

    assert [r["id"] for r in requests] == [4, 3, 2, 1]


def test_list_includes_viewed_state(investment_requests):
    request = investment_requests.create_request(REQUEST)
    investment_requests.mark_viewed([request.id])

    listed = investment_requests.list_for_investor("jane@example.com")

    assert listed[0]["viewed"] is True
    assert listed[0]["viewed_at"] is not None


@pytest.fixture
def legacy_submissions_database():
    """referral_submissions as it was before the viewed columns existed."""
    database = Database("sqlite://")
    with database.engine.begin() as conn:
        conn.exec_driver_sql(
            """
            CREATE TABLE referral_submissions (
                id INTEGER PRIMARY KEY,
                referral_id INTEGER NOT NULL,
                referral_code VARCHAR(20) NOT NULL,
                referrer_id INTEGER NOT NULL,
                full_name VARCHAR(255) NOT NULL,
                email VARCHAR(255) NOT NULL,
                status VARCHAR(32) NOT NULL,
                created_at DATETIME NOT NULL,
                updated_at DATETIME NOT NULL
            )
            """
        )
        for referral_id, status in ((1, "pending"), (2, "pending"), (3, "approved")):
            conn.exec_driver_sql(
                "INSERT INTO referral_submissions "
                "(referral_id, referral_code, referrer_id, full_name, email, status, created_at, updated_at) "
                "VALUES (?, 'AB12CD', 42, 'Jane Doe', 'jane@example.com', ?, "
                "'2026-01-01 00:00:00', '2026-01-01 00:00:00')",
                (referral_id, status),
            )
    try:
        yield database
    finally:
        database.dispose()


def test_degraded_submissions_count_pending(legacy_submissions_database, feed):
    from wtx.referral.intake import submissions_ledger

    assert submissions_ledger(database=legacy_submissions_database, feed=feed).unviewed_count() == 2


def test_degraded_submission_mark_viewed(legacy_submissions_database, feed):
    from wtx.referral.intake import SubmissionIntake

    events = []
    feed.subscribe("referral_submissions", events.append)
    intake = SubmissionIntake(database=legacy_submissions_database, feed=feed)

    assert intake.mark_viewed(1) is True
    assert intake.mark_viewed(99) is False
    assert intake.unviewed_count() == 2
    assert events == []


def test_degraded_submissions_through_gateway(legacy_submissions_database, feed):
    from wtx.referral.gateway import ReferralGateway
    from wtx.referral.intake import SubmissionIntake

    intake = SubmissionIntake(database=legacy_submissions_database, feed=feed)
    gateway = ReferralGateway(registry=intake.funnel.registry, funnel=intake.funnel, intake=intake)

    assert gateway.get_unviewed_referral_submissions_count() == 2
    assert gateway.mark_referral_submission_viewed(1).success is True

    missing = gateway.mark_referral_submission_viewed(99)
    assert missing.success is False
    assert missing.error_kind == "not_found"
