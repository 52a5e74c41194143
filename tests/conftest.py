"""Shared fixtures: in-memory SQLite, scripted quote source, API client."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from core.exceptions import QuoteFetchError
from core.room_manager import RoomManager
from schemas import CryptoAsset
from services.quote_service import Quote


class ScriptedQuoteSource:
    """Returns the scripted prices in order; an Exception entry is raised instead."""

    def __init__(self, prices, assets=None):
        self.prices = list(prices)
        self.assets = assets or []
        self.calls = 0

    async def fetch_price(self, symbol):
        self.calls += 1
        if not self.prices:
            raise QuoteFetchError(symbol, "script exhausted")
        item = self.prices.pop(0)
        if isinstance(item, Exception):
            raise item
        return Quote(symbol=symbol.upper(), price=float(item), timestamp=datetime.now(timezone.utc))

    async def list_assets(self):
        if isinstance(self.assets, Exception):
            raise self.assets
        return self.assets


class RecordingRunner:
    """Stands in for RaceRunner in API tests: records launches, never ticks."""

    def __init__(self):
        self.launched = []

    def is_running(self, code):
        return code in [lc.code for lc in self.launched]

    def launch(self, lifecycle):
        self.launched.append(lifecycle)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def asset():
    return CryptoAsset(id="bitcoin", name="Bitcoin", symbol="btc")


@pytest.fixture
def room(db, asset):
    """Room ABCDEF hosted by A; returns (code, host_token)."""
    created, _ = RoomManager.create_room(db, "A", asset, code="ABCDEF")
    return created.code, created.host_token


@pytest.fixture
def quotes():
    return ScriptedQuoteSource([])


@pytest.fixture
def runner():
    return RecordingRunner()


@pytest.fixture
def client(session_factory, quotes, runner):
    from main import app
    from api.deps import get_quote_source, get_race_runner, get_session_factory

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_quote_source] = lambda: quotes
    app.dependency_overrides[get_race_runner] = lambda: runner

    # no context manager: lifespan (real DB, real quote API) stays off
    yield TestClient(app)

    app.dependency_overrides.clear()
