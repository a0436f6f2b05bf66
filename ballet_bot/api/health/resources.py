"""Health check resources for liveness and readiness checks.

These resources are stateless and are registered whether or not the bot
has GitHub credentials.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness resource.

    Reports ``ready`` when the webhook route is wired to an engine or a
    queue, and ``health-only`` otherwise. Both answer HTTP 200 so that an
    unconfigured pod still passes its health checks.
    """

    def __init__(self, *, webhooks_enabled: bool = False) -> None:
        """Record whether the webhook endpoint is registered."""
        self._webhooks_enabled = webhooks_enabled

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        resp.media = {"status": "ready" if self._webhooks_enabled else "health-only"}
        resp.status = HTTPStatus.OK
