import pytest

from wtx.referral.gateway import INVALID_LINK_MESSAGE
from wtx.referral.registry import build_link
from wtx.referral.validators import REQUIRED_FIELDS_MESSAGE

JANE = {"full_name": "Jane Doe", "email": "jane@example.com", "investment_amount": "25000"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_referral_code(client, investor):
    response = client.get("/api/v1/referral/code/42")

    assert response.status_code == 200
    assert response.json() == {"code": "AB12CD", "link": build_link("AB12CD")}


def test_referral_code_unknown_investor(client, database):
    assert client.get("/api/v1/referral/code/999").status_code == 503


def test_share_link(client, investor):
    data = client.get("/api/v1/referral/share/42", params={"referrer_name": "Alice"}).json()

    assert data["email_subject"] == "Join WTX Energy - Investment Opportunity"
    assert data["link"] in data["email_body"]
    assert data["email_body"].endswith("Alice")


def test_click_sets_referral_cookies(client, code):
    response = client.post("/api/v1/referral/track-click", json={"code": "ab12cd"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.cookies.get("referral_code") == "AB12CD"
    assert client.cookies.get("referral_code_visitor")


def test_invalid_link_is_not_found(client, code):
    response = client.post("/api/v1/referral/track-click", json={"code": "BOGUS1"})

    assert response.status_code == 404
    assert response.json()["detail"] == INVALID_LINK_MESSAGE
    assert client.cookies.get("referral_code") is None


def test_submit_flow(client, code):
    client.post("/api/v1/referral/track-click", json={"code": code})

    response = client.post("/api/v1/referral/submit", json={"code": code, **JANE})
    assert response.status_code == 201
    submission_id = response.json()["submission_id"]

    stats = client.get("/api/v1/referral/stats/42").json()
    assert stats["total_referrals"] == 1
    assert stats["submitted"] == 1

    [referral] = client.get("/api/v1/referral/referrals/42").json()
    assert referral["submission_status"] == "pending"

    [row] = client.get("/api/v1/admin/referral-submissions").json()
    assert row["id"] == submission_id
    assert row["referrer_name"] == "Alice Investor"


def test_submit_validation(client, code):
    response = client.post("/api/v1/referral/submit", json={"code": code, "email": "jane@example.com"})

    assert response.status_code == 400
    assert response.json()["detail"] == REQUIRED_FIELDS_MESSAGE


def test_submit_invalid_code(client, code):
    response = client.post("/api/v1/referral/submit", json={"code": "BOGUS1", **JANE})
    assert response.status_code == 404


def test_admin_triage(client, code):
    submission_id = client.post("/api/v1/referral/submit", json={"code": code, **JANE}).json()["submission_id"]
    base = f"/api/v1/admin/referral-submissions/{submission_id}"

    assert client.get("/api/v1/admin/referral-submissions/unviewed-count").json() == {"count": 1}
    assert client.post(f"{base}/viewed").status_code == 200
    assert client.get("/api/v1/admin/referral-submissions/unviewed-count").json() == {"count": 0}

    assert client.patch(f"{base}/status", json={"status": "pending"}).status_code == 400
    assert client.patch(f"{base}/status", json={"status": "contacted"}).status_code == 200
    assert client.patch(f"{base}/notes", json={"admin_notes": "Left voicemail"}).status_code == 200

    row = client.get(base).json()
    assert row["status"] == "contacted"
    assert row["admin_notes"] == "Left voicemail"

    assert client.get("/api/v1/admin/referral-submissions", params={"status": "contacted"}).json()[0]["id"] == submission_id
    assert client.get("/api/v1/admin/referral-submissions", params={"search": "nobody"}).json() == []


def test_admin_unknown_submission(client, database):
    assert client.get("/api/v1/admin/referral-submissions/999").status_code == 404
    assert client.post("/api/v1/admin/referral-submissions/999/viewed").status_code == 404
    assert client.patch("/api/v1/admin/referral-submissions/999/status", json={"status": "approved"}).status_code == 404


def test_activate_referral(client, gateway, code):
    clicked = client.post("/api/v1/referral/track-click", json={"code": code}).json()
    submitted = gateway.submit_referral_form(code, JANE, visitor_token="elsewhere")
    referral_id = gateway.intake.get_submission(submitted.submission_id).referral_id

    assert client.post(f"/api/v1/admin/referrals/{clicked['referral_id']}/activate").status_code == 409
    assert client.post(f"/api/v1/admin/referrals/{referral_id}/activate").status_code == 200
    assert client.post("/api/v1/admin/referrals/999/activate").status_code == 404


def test_contact_form_attributes_referral(client, gateway, code):
    client.post("/api/v1/referral/track-click", json={"code": code})

    response = client.post("/api/v1/contact", json={"name": "Jane Doe", "email": "jane@example.com"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "attribution_scheduled": True}
    assert client.cookies.get("referral_code") is None

    [referral] = gateway.get_referrals(42)
    assert referral["referred_email"] == "jane@example.com"
    assert referral["referred_name"] == "Jane Doe"


def test_contact_form_without_referral(client, gateway, code):
    response = client.post("/api/v1/contact", json={"name": "Jane Doe", "email": "jane@example.com"})

    assert response.json()["attribution_scheduled"] is False
    assert gateway.get_referrals(42) == []


def test_contact_form_validation(client, database):
    response = client.post("/api/v1/contact", json={"name": "Jane Doe", "email": "jane"})
    assert response.status_code == 400


def test_investment_requests(client):
    response = client.post(
        "/api/v1/investment-requests",
        json={"investor_email": "jane@example.com", "full_name": "Jane Doe", "project_name": "Permian Lease 7", "units": 3},
    )
    assert response.status_code == 201
    request_id = response.json()["id"]

    mine = client.get("/api/v1/investment-requests", params={"email": "jane@example.com"}).json()
    assert [r["id"] for r in mine] == [request_id]

    assert client.get("/api/v1/admin/investment-requests/unviewed-count").json() == {"count": 1}
    assert client.post("/api/v1/admin/investment-requests/viewed", json={}).json() == {"marked": 1}
    assert client.get("/api/v1/admin/investment-requests/unviewed-count").json() == {"count": 0}
    assert client.post("/api/v1/admin/investment-requests/viewed", json={"ids": [request_id]}).json() == {"marked": 0}


def test_investment_request_validation(client):
    response = client.post("/api/v1/investment-requests", json={"name": "Jane Doe", "project_name": "Permian Lease 7"})
    assert response.status_code == 400


@pytest.fixture
def enforced_limits(monkeypatch):
    from wtx.api.rate_limit import limiter

    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    yield limiter
    limiter.reset()


def test_form_posts_are_rate_limited(client, database, enforced_limits):
    payload = {"name": "Jane Doe", "email": "jane@example.com"}

    statuses = [client.post("/api/v1/contact", json=payload).status_code for _ in range(11)]

    assert statuses == [200] * 10 + [429]
    assert client.get("/health").status_code == 200


@pytest.mark.parametrize(
    "env, override, expected",
    [("production", None, True), ("development", None, False), ("development", True, True), ("production", False, False)],
)
def test_limits_enabled(monkeypatch, env, override, expected):
    from wtx.api.rate_limit import limits_enabled
    from wtx.settings import settings

    monkeypatch.setattr(settings, "env", env)
    monkeypatch.setattr(settings, "rate_limit_enabled", override)

    assert limits_enabled() is expected
