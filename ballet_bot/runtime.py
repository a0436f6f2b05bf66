"""ballet-bot runtime entrypoint.

This module provides the ASGI application factory served by Granian. It
delegates to :func:`ballet_bot.api.app.create_app` while keeping the
``ballet_bot.runtime:create_app`` entrypoint stable.

Configuration is driven by environment variables:

- ``BALLET_BOT_HOST``: Bind address (default ``0.0.0.0``)
- ``BALLET_BOT_PORT``: Listen port (default ``8080``)
- ``BALLET_BOT_LOG_LEVEL``: Log level (default ``INFO``)
- ``BALLET_BOT_GITHUB_TOKEN``: GitHub token; without it, and with inline
  dispatch, the service starts in health-only mode
- ``BALLET_BOT_DISPATCH``: ``inline`` (default) or ``queue``

Run the service directly with ``python -m ballet_bot.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from ballet_bot.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid BALLET_BOT_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def _enqueue_check_run(payload: str, delivery_id: str) -> None:
    from ballet_bot.policy.actor import handle_check_run_job

    handle_check_run_job.send(payload, delivery_id)


def create_app() -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Queue dispatch only needs a broker; inline dispatch needs
    ``BALLET_BOT_GITHUB_TOKEN`` to build the policy engine.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    from ballet_bot.api.app import AppDependencies
    from ballet_bot.api.app import create_app as _create_api_app
    from ballet_bot.config.settings import BotSettings

    settings = BotSettings.from_env()

    if settings.dispatch == "queue":
        return _create_api_app(
            AppDependencies(settings=settings, enqueue=_enqueue_check_run)
        )

    if not os.environ.get("BALLET_BOT_GITHUB_TOKEN", "").strip():
        log_warning(
            logger,
            "BALLET_BOT_GITHUB_TOKEN is not set; serving health endpoints only",
        )
        return _create_api_app()

    from ballet_bot.policy.factory import create_engine_from_env

    deps = AppDependencies(engine=create_engine_from_env(), settings=settings)
    return _create_api_app(deps)


def main() -> None:
    """Start the ballet-bot server using Granian.

    Reads ``BALLET_BOT_HOST``, ``BALLET_BOT_PORT`` and
    ``BALLET_BOT_LOG_LEVEL`` from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("BALLET_BOT_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port_str = os.environ.get("BALLET_BOT_PORT", "8080")
    port = _parse_port(port_str)
    log_level_str = os.environ.get("BALLET_BOT_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid BALLET_BOT_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting ballet-bot on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "ballet_bot.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
