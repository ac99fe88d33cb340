import pytest

from wtx.referral.gateway import INVALID_LINK_MESSAGE
from wtx.referral.models import ReferralStatus
from wtx.referral.session import MemorySessionStore, ReferralSession
from wtx.referral.validators import INVALID_EMAIL_MESSAGE, REQUIRED_FIELDS_MESSAGE

JANE = {"full_name": "Jane Doe", "email": "jane@example.com"}


@pytest.mark.parametrize("investor", [42, "42", {"id": 42}, {"INVESTOR_ID": 42}])
def test_code_for_any_investor_shape(gateway, investor):
    from wtx.storage.models import Investor

    with gateway.registry.db.session() as session:
        if session.get(Investor, 42) is None:
            session.add(Investor(id=42, name="Alice Investor", email="alice@example.com"))

    assert gateway.get_or_create_referral_code(investor) == "AB12CD"
    assert gateway.get_referral_link(investor).endswith("?ref=AB12CD")


@pytest.mark.parametrize("investor", [None, 0, "abc", {}, 999])
def test_code_unavailable(gateway, investor):
    assert gateway.get_or_create_referral_code(investor) is None
    assert gateway.get_referral_link(investor) is None


def test_click_result(gateway, code):
    result = gateway.track_referral_click(code, visitor_token="visitor-1")

    assert result.success
    assert result.referrer_id == 42
    assert result.referral_id is not None


def test_invalid_link(gateway, code):
    result = gateway.track_referral_click("BOGUS1")

    assert not result.success
    assert result.error == INVALID_LINK_MESSAGE
    assert result.error_kind == "invalid_code"


def test_submit_result(gateway, code):
    result = gateway.submit_referral_form(code, JANE)

    assert result.success
    assert result.submission_id is not None
    assert gateway.get_unviewed_referral_submissions_count() == 1


@pytest.mark.parametrize(
    "form, message",
    [
        ({"full_name": "Jane Doe"}, REQUIRED_FIELDS_MESSAGE),
        ({"full_name": "Jane Doe", "email": "jane"}, INVALID_EMAIL_MESSAGE),
    ],
)
def test_submit_validation_messages(gateway, code, form, message):
    result = gateway.submit_referral_form(code, form)

    assert not result.success
    assert result.error == message
    assert result.error_kind == "invalid_input"


def test_submit_invalid_code(gateway, code):
    result = gateway.submit_referral_form("BOGUS1", JANE)

    assert result.error == INVALID_LINK_MESSAGE
    assert result.error_kind == "invalid_code"


def test_contact_update(gateway, code):
    gateway.track_referral_click(code, visitor_token="visitor-1")

    result = gateway.update_referral_contact(code, "jane@example.com", "Jane Doe", visitor_token="visitor-1")
    bad = gateway.update_referral_contact(code, "jane", "Jane Doe")

    assert result.success
    assert bad.error_kind == "invalid_input"


def test_best_effort_attribution_never_raises(gateway, code, monkeypatch):
    assert gateway.attribute_contact_best_effort(None, "jane@example.com", "Jane") is False
    assert gateway.attribute_contact_best_effort("BOGUS1", "jane@example.com", "Jane") is False

    def crash(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(gateway.funnel, "update_contact", crash)
    assert gateway.attribute_contact_best_effort(code, "jane@example.com", "Jane") is False


def test_best_effort_attribution(gateway, code):
    assert gateway.attribute_contact_best_effort(code, "jane@example.com", "Jane Doe") is True

    referral = gateway.get_referrals(42)[0]
    assert referral["referred_email"] == "jane@example.com"
    assert referral["status"] == ReferralStatus.CLICKED.value


def test_session_attribution_forgets_code(gateway, code):
    session = ReferralSession(MemorySessionStore())
    session.remember(code)

    assert gateway.attribute_session_best_effort(session, "jane@example.com", "Jane Doe") is True
    assert session.referral_code is None
    assert session.visitor_token is not None


def test_session_attribution_keeps_code_on_failure(gateway, code):
    session = ReferralSession(MemorySessionStore())
    session.remember(code)

    assert gateway.attribute_session_best_effort(session, "not-an-email", "Jane Doe") is False
    assert session.referral_code == code


def test_triage_results(gateway, code):
    submission_id = gateway.submit_referral_form(code, JANE).submission_id

    assert gateway.update_referral_submission_status(submission_id, "approved").success
    assert gateway.update_referral_submission_status(submission_id, "pending").error_kind == "invalid_input"
    assert gateway.update_referral_submission_status(999, "approved").error_kind == "not_found"
    assert gateway.update_referral_submission_notes(submission_id, "Follow up Monday").success
    assert gateway.update_referral_submission_notes(999, "x").error_kind == "not_found"

    [row] = gateway.get_referral_submissions()
    assert row["status"] == "approved"
    assert row["admin_notes"] == "Follow up Monday"


def test_mark_viewed_result(gateway, code):
    submission_id = gateway.submit_referral_form(code, JANE).submission_id

    assert gateway.mark_referral_submission_viewed(submission_id).success
    assert gateway.mark_referral_submission_viewed(999).error_kind == "not_found"
    assert gateway.get_unviewed_referral_submissions_count() == 0


def test_activation_results(gateway, code):
    clicked = gateway.track_referral_click(code, visitor_token="visitor-1")
    submitted = gateway.submit_referral_form(code, JANE, visitor_token="visitor-2")
    submission = gateway.intake.get_submission(submitted.submission_id)

    assert gateway.mark_referral_active_investor(clicked.referral_id).error_kind == "conflict"
    assert gateway.mark_referral_active_investor(999).error_kind == "not_found"
    assert gateway.mark_referral_active_investor(submission.referral_id).success
    assert gateway.get_referral_stats(42)["active_investors"] == 1


def test_backend_failures_are_contained(gateway, code, database):
    database.drop_tables()

    assert gateway.get_referral_stats(42) is None
    assert gateway.get_referrals(42) == []
    assert gateway.get_referral_submissions() == []
    assert gateway.get_unviewed_referral_submissions_count() == 0
    assert gateway.get_or_create_referral_code(42) is None

    result = gateway.track_referral_click(code)
    assert not result.success
    assert result.error_kind == "backend"
