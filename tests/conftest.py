"""
Test configuration and fixtures for the Shortlink service.
This centralizes all test setup, making individual tests clean.
"""

import os

# Settings are read at import time: force in-process backends before importing the app
os.environ["ALIAS_BACKEND"] = "memory"
os.environ["COUNTER_BACKEND"] = "memory"
os.environ["EVENT_LOG_BACKEND"] = "memory"
os.environ["AGGREGATOR_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from shortlink_app.aliases.strategies import InMemoryAliasStore
from shortlink_app.counters.strategies import InMemoryCounterStore
from shortlink_app.database.connection import Base
from shortlink_app.dependencies import get_url_service
from shortlink_app.hit_processor.click_aggregator import ClickAggregator
from shortlink_app.models import AliasRecord, ClickCounter  # noqa: F401
from shortlink_app.queue.strategies import InMemoryEventLog
from shortlink_app.services.alias_generator import AliasGenerator
from shortlink_app.services.url_service import URLService

BASE_URL = "http://sho.rt"


@pytest.fixture(scope="function")
def session_factory():
    """
    Fresh in-memory SQLite database for each test.
    StaticPool keeps the single connection alive so every session sees the same data.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def alias_store():
    return InMemoryAliasStore()


@pytest.fixture
def event_log():
    return InMemoryEventLog()


@pytest.fixture
def counters():
    return InMemoryCounterStore()


@pytest.fixture
def generator(alias_store):
    return AliasGenerator(alias_store, length=7, ttl=3600)


@pytest.fixture
def url_service(alias_store, generator, event_log, counters):
    return URLService(
        aliases=alias_store,
        generator=generator,
        event_log=event_log,
        counters=counters,
        base_url=BASE_URL,
    )


@pytest.fixture
def aggregator(event_log, counters):
    return ClickAggregator(
        event_log=event_log,
        counters=counters,
        group="analytics-group",
        consumer="consumer-1",
        batch_size=10,
        interval_seconds=0.01,
        claim_min_idle_ms=0,
    )


@pytest.fixture(scope="function")
def client(url_service):
    """
    Create a test client with the URL service dependency overridden.
    This is the main fixture that API tests will use.
    """
    app.dependency_overrides[get_url_service] = lambda: url_service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
