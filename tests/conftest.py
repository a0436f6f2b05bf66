"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import dramatiq
import pytest
from dramatiq.brokers.stub import StubBroker

from tests.helpers.fake_store import FakeObjectStore

# Actors bind to the global broker when their module is imported, so the
# stub has to be in place before any test module imports one.
_BROKER = StubBroker()
dramatiq.set_broker(_BROKER)

_BOT_ENVIRONMENT = (
    "BALLET_BOT_ALLOW_STUB_BROKER",
    "BALLET_BOT_DEADLINE_SECONDS",
    "BALLET_BOT_DISPATCH",
    "BALLET_BOT_GITHUB_API_URL",
    "BALLET_BOT_GITHUB_TOKEN",
    "BALLET_BOT_TRAVIS_API_URL",
    "BALLET_BOT_TRAVIS_TOKEN",
    "BALLET_BOT_WEBHOOK_SECRET",
)


@pytest.fixture(autouse=True)
def _clean_bot_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's BALLET_BOT_* variables out of tests."""
    for name in _BOT_ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def stub_broker() -> StubBroker:
    """Return the in-memory Dramatiq broker with empty queues."""
    _BROKER.flush_all()
    return _BROKER


@pytest.fixture
def fake_store() -> FakeObjectStore:
    """Return an empty in-memory repository."""
    return FakeObjectStore()
