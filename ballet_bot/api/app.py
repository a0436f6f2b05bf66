"""Application factory for the ballet-bot Falcon ASGI application.

Usage
-----
Create a health-only app (no GitHub credentials)::

    app = create_app()

Create the full app with the webhook endpoint::

    from ballet_bot.api.app import AppDependencies, create_app

    deps = AppDependencies(engine=engine, settings=BotSettings.from_env())
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from ballet_bot.api.errors import register_error_handlers
from ballet_bot.api.health.resources import HealthResource, ReadyResource
from ballet_bot.config.settings import BotSettings

if typ.TYPE_CHECKING:
    from ballet_bot.api.webhooks.resources import Enqueue
    from ballet_bot.policy.engine import PolicyEngine

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    The webhook route is registered when the configured dispatch mode has
    what it needs: an ``engine`` for inline dispatch, an ``enqueue``
    callable for queue dispatch.

    Attributes
    ----------
    engine
        Policy engine used to handle events inline.
    settings
        Webhook service settings.
    enqueue
        Callable handing ``(payload, delivery_id)`` to the worker queue.

    """

    engine: PolicyEngine | None = None
    settings: BotSettings = dc.field(default_factory=BotSettings)
    enqueue: Enqueue | None = None


def _has_webhook_deps(deps: AppDependencies | None) -> bool:
    """Return True when the dispatch mode can be served."""
    if deps is None:
        return False
    if deps.settings.dispatch == "queue":
        return deps.enqueue is not None
    return deps.engine is not None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    ``/health`` and ``/ready`` are always registered; ``POST
    /webhooks/github`` only when *dependencies* can serve it.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None``, only health
        endpoints are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App()
    webhooks_enabled = _has_webhook_deps(dependencies)

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(webhooks_enabled=webhooks_enabled))

    if webhooks_enabled and dependencies is not None:
        from ballet_bot.api.webhooks.resources import (
            GitHubWebhookResource,
            WebhookDependencies,
        )

        app.add_route(
            "/webhooks/github",
            GitHubWebhookResource(
                WebhookDependencies(
                    settings=dependencies.settings,
                    engine=dependencies.engine,
                    enqueue=dependencies.enqueue,
                )
            ),
        )

    register_error_handlers(app)
    return app
