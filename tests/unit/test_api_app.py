"""Unit tests for ballet_bot.api.app application factory.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_app.py

"""

from __future__ import annotations

from unittest import mock

import falcon.asgi
import falcon.testing
import pytest

from ballet_bot.api.app import AppDependencies, create_app
from ballet_bot.config import BotSettings


@pytest.fixture
def health_client() -> falcon.testing.TestClient:
    """Build a test client for health-only mode."""
    return falcon.testing.TestClient(create_app())


class TestCreateAppHealthOnly:
    """Tests for create_app() without an engine or queue."""

    def test_returns_falcon_app(self) -> None:
        """create_app() returns a Falcon ASGI App."""
        assert isinstance(create_app(), falcon.asgi.App), "expected Falcon ASGI App"

    def test_has_health_route(self, health_client: falcon.testing.TestClient) -> None:
        """Health-only app responds to /health."""
        result = health_client.simulate_get("/health")
        assert result.status == falcon.HTTP_200, "expected HTTP 200 from /health"
        assert result.json == {"status": "ok"}, "wrong /health body"

    def test_ready_reports_health_only(
        self, health_client: falcon.testing.TestClient
    ) -> None:
        """/ready still answers 200 but reports the reduced mode."""
        result = health_client.simulate_get("/ready")
        assert result.status == falcon.HTTP_200, "expected HTTP 200 from /ready"
        assert result.json == {"status": "health-only"}, "wrong /ready body"

    def test_webhook_endpoint_not_registered(
        self, health_client: falcon.testing.TestClient
    ) -> None:
        """Without dependencies, the webhook endpoint returns 404."""
        result = health_client.simulate_post("/webhooks/github", body=b"{}")
        assert result.status == falcon.HTTP_404, "expected HTTP 404"


class TestCreateAppWithDeps:
    """Tests for create_app() with dispatch dependencies."""

    def test_inline_dispatch_needs_engine(self) -> None:
        """Inline mode registers the webhook once an engine is supplied."""
        client = falcon.testing.TestClient(
            create_app(AppDependencies(engine=mock.MagicMock()))
        )

        assert client.simulate_get("/ready").json == {"status": "ready"}
        result = client.simulate_post(
            "/webhooks/github", body=b"{}", headers={"X-GitHub-Event": "push"}
        )
        assert result.status == falcon.HTTP_202, "expected ignored push event"

    def test_queue_dispatch_without_enqueue_is_health_only(self) -> None:
        """Queue mode without an enqueue callable keeps the route disabled."""
        deps = AppDependencies(
            engine=mock.MagicMock(), settings=BotSettings(dispatch="queue")
        )
        client = falcon.testing.TestClient(create_app(deps))

        assert client.simulate_get("/ready").json == {"status": "health-only"}

    def test_queue_dispatch_with_enqueue(self) -> None:
        """Queue mode is served with only an enqueue callable."""
        deps = AppDependencies(
            settings=BotSettings(dispatch="queue"), enqueue=mock.MagicMock()
        )
        client = falcon.testing.TestClient(create_app(deps))

        assert client.simulate_get("/ready").json == {"status": "ready"}
