# ruff: noqa: E402
import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

# Set testing environment flags before importing the app or settings
os.environ["APP_ENV"] = "test"
os.environ["DISABLE_EXTERNAL_NOTIFICATIONS"] = "1"
os.environ["LOG_DIR"] = ""
test_db_url = (
    os.environ.get("LOCAL_TEST_DATABASE_URL")
    or os.environ.get("TEST_DATABASE_URL")
    or "sqlite:///./tests/test.db"
)
os.environ["TEST_DATABASE_URL"] = test_db_url

from pushdelivery.core.config import settings
from pushdelivery.core.database import get_db
from pushdelivery.main import app
from pushdelivery.models import load_models
from pushdelivery.modules.notifications.dependencies import (
    build_push_service,
    get_push_gateway,
)
from pushdelivery.modules.notifications.repository import DeviceTokenStore
from tests.fakes import FakeGateway
from tests.testclient import TestClient

metadata = load_models()


def _init_test_engine():
    url = make_url(test_db_url)
    engine_kwargs = {"echo": False}
    if url.drivername.startswith("sqlite"):
        # Resolution and pruning run in worker threads.
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(test_db_url, **engine_kwargs)


engine = _init_test_engine()
metadata.drop_all(bind=engine)
metadata.create_all(bind=engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def session():
    """Fresh database session with empty tables for each test."""
    with engine.begin() as connection:
        for table in reversed(metadata.sorted_tables):
            connection.execute(table.delete())
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(session):
    return DeviceTokenStore(session)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_service(store):
    """Build a fully wired service around the given gateway."""

    def _make(gateway, config=settings):
        return build_push_service(store, gateway, config=config)

    return _make


@pytest.fixture
def register(store):
    """Register `tokens` for `recipient_id`, one device row per entry (duplicates allowed)."""

    def _register(recipient_id, *tokens):
        store.ensure_recipient(recipient_id)
        for index, token in enumerate(tokens):
            store.register_token(recipient_id, token, device_id=f"{recipient_id}-dev-{index}")
        return store

    return _register


@pytest.fixture(scope="function")
def client(session, gateway):
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        try:
            yield test_client
        finally:
            app.dependency_overrides.clear()
