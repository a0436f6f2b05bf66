"""ballet-bot HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application receiving GitHub webhooks.

Usage
-----
Create and run the application::

    from ballet_bot.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # with the webhook endpoint

"""

from ballet_bot.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
