# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from wtx.api.deps import get_gateway, get_investment_requests
from wtx.api.main import create_app
from wtx.events import ChangeFeed
from wtx.investments.service import InvestmentRequestService
from wtx.referral.funnel import ReferralFunnel
from wtx.referral.gateway import ReferralGateway
from wtx.referral.intake import SubmissionIntake
from wtx.referral.registry import ReferralCodeRegistry, generate_code
from wtx.storage.db import Database
from wtx.storage.models import Investor


def scripted_codes(*codes):
    """Code factory returning the given codes first, then random ones."""
    pending = list(codes)

    def factory():
        return pending.pop(0) if pending else generate_code()

    return factory


@pytest.fixture
def database():
    """Fresh in-memory database per test."""
    database = Database("sqlite://")
    database.create_tables()
    try:
        yield database
    finally:
        database.drop_tables()
        database.dispose()


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def investor(database):
    with database.session() as session:
        investor = Investor(id=42, name="Alice Investor", email="alice@example.com")
        session.add(investor)
    return investor


@pytest.fixture
def registry(database):
    # The first issued code is AB12CD
    return ReferralCodeRegistry(database=database, code_factory=scripted_codes("AB12CD"))


@pytest.fixture
def funnel(registry, database, feed):
    return ReferralFunnel(registry=registry, database=database, feed=feed)


@pytest.fixture
def intake(funnel, database, feed):
    return SubmissionIntake(funnel=funnel, database=database, feed=feed)


@pytest.fixture
def gateway(registry, funnel, intake):
    return ReferralGateway(registry=registry, funnel=funnel, intake=intake)


@pytest.fixture
def investment_requests(database, feed):
    return InvestmentRequestService(database=database, feed=feed)


@pytest.fixture
def code(registry, investor):
    """Referral code of investor 42."""
    return registry.get_or_create_code(investor.id).code


@pytest.fixture
def client(gateway, investment_requests):
    app = create_app()
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_investment_requests] = lambda: investment_requests
    return TestClient(app)
