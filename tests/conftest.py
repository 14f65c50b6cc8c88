import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from margin_analysis.core.security import create_access_token, hash_password
from margin_analysis.database import Base, get_db
from margin_analysis.main import app
from margin_analysis.models import Client, CostRate, User
from margin_analysis.seed.seed_margin import seed_margin_reference_data
from margin_analysis.utils.currency import CurrencyService, DatabaseRateStore, get_currency_service

COST_RATES = {
    "Project Director": 200.0,
    "Project Manager": 100.0,
    "Solution Architect": 150.0,
}


class FakeRateStore:
    def __init__(self, rates=None):
        self.rates = dict(rates or {})
        self.get_calls = 0

    def get(self, currency_code):
        self.get_calls += 1
        return self.rates.get(currency_code)

    def upsert(self, currency_code, rate_to_usd):
        self.rates[currency_code] = rate_to_usd

    def list_all(self):
        return [
            SimpleNamespace(currency_code=code, rate_to_usd=rate)
            for code, rate in sorted(self.rates.items())
        ]


class FakeRateSource:
    url = "fake://rates"

    def __init__(self, rates=None, error=None):
        self.rates = rates
        self.error = error
        self.calls = 0

    def fetch_latest(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.rates is None:
            raise ConnectionError("rate source offline")
        return dict(self.rates)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_margin_reference_data(session)
    for resource_type, rate in COST_RATES.items():
        session.query(CostRate).filter_by(resource_type=resource_type).update({"cost_rate_usd": rate})
    session.commit()
    yield session
    session.close()


@pytest.fixture
def rate_source():
    return FakeRateSource()


@pytest.fixture
def currency_service(session_factory, rate_source, db):
    return CurrencyService(DatabaseRateStore(session_factory), rate_source)


@pytest.fixture
def client(session_factory, currency_service):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_currency_service] = lambda: currency_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(db, email, role):
    user = User(
        email=email,
        username=email.split("@")[0],
        hashed_password=hash_password("secret-password"),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _headers(user):
    token = create_access_token({"sub": user.email, "id": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(db):
    return _make_user(db, "admin@example.com", "admin")


@pytest.fixture
def regular_user(db):
    return _make_user(db, "analyst@example.com", "user")


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def user_headers(regular_user):
    return _headers(regular_user)


@pytest.fixture
def acme(db):
    client = Client(client_name="Acme Corp")
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


@pytest.fixture
def project_payload(acme):
    return {
        "client_id": acme.id,
        "currency_used": "USD",
        "contract_number": "C-1001",
        "oracle_id": "ORA-77",
        "project_name": "Alpha Rollout",
        "local_service_value": 100000,
        "baseline_hours": 190,
        "total_baseline_hours": 210,
        "non_bill_hours": 10,
        "resources": [
            {"resource_type": "Project Manager", "baseline_hours": 150, "final_hours": 200},
        ],
        "third_party_resources": [
            {"resource_name": "Vendor QA", "cost_usd": 5000, "hours": 20},
        ],
    }
