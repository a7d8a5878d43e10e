"""
conftest.py - Shared pytest fixtures

- in-memory SQLite engine (set before the app is imported)
- a fresh schema per test
- a controllable clock
- helpers to register users and open offers
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

import app.models  # noqa: F401  registers tables
from app.utils.database import Base, SessionLocal, engine, get_db
from app.routers.loans_router import get_clock
from app.services import identity, offers

BORROWER = "0x" + "a1" * 20
LENDER = "0x" + "b2" * 20
OTHER_LENDER = "0x" + "c3" * 20
NFT_CONTRACT = "0x" + "d4" * 20

ETH = 10 ** 18
DAY = 86_400


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 1, 12, 0, 0))


@pytest.fixture
def client(clock):
    from main import app

    def _get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(db, wallet: str, username: str):
    return identity.register_user(db, username, wallet)


def offer_request(**overrides) -> offers.OfferRequest:
    data = dict(
        borrower_wallet=BORROWER,
        principal_wei=5 * ETH,
        interest_rate_bps=1000,
        duration_seconds=30 * DAY,
        asset_contract=NFT_CONTRACT,
        token_id="1",
        collateral_value_wei=10 * ETH,
    )
    data.update(overrides)
    return offers.OfferRequest(**data)


@pytest.fixture
def borrower(db):
    return register(db, BORROWER, "alice")


@pytest.fixture
def active_loan(db, borrower, clock):
    loan, created = offers.create_offer(db, offer_request(), now=clock)
    assert created
    return loan
