"""Domain exceptions and Falcon error handlers for the webhook surface.

Failures of a bot run are reported back to the webhook caller with the
causing error and the decision log inline rather than dropped.

Usage
-----
Register the handlers on the Falcon app::

    from ballet_bot.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon

from ballet_bot.ci.errors import CIProviderError
from ballet_bot.config.errors import ProjectConfigError
from ballet_bot.github.errors import GitHubAPIError, GitHubResponseShapeError
from ballet_bot.policy.events import InvalidPayloadError
from ballet_bot.pruning.errors import PublishError, RedundancyComputationError

if typ.TYPE_CHECKING:
    from falcon.asgi import App, Request, Response

__all__ = [
    "InvalidSignatureError",
    "handle_bot_run_failed",
    "handle_invalid_payload",
    "handle_invalid_signature",
    "handle_timeout",
    "register_error_handlers",
]

_BOT_RUN_FAILURES: tuple[type[Exception], ...] = (
    PublishError,
    RedundancyComputationError,
    GitHubAPIError,
    GitHubResponseShapeError,
    CIProviderError,
    ProjectConfigError,
)


class InvalidSignatureError(Exception):
    """Raised when ``X-Hub-Signature-256`` does not match the body."""

    @classmethod
    def missing(cls) -> InvalidSignatureError:
        """Return an error for a delivery without a signature."""
        return cls("X-Hub-Signature-256 header is missing")

    @classmethod
    def mismatch(cls) -> InvalidSignatureError:
        """Return an error for a signature that does not verify."""
        return cls("X-Hub-Signature-256 does not match the payload")


def _decision_log(ex: BaseException) -> list[str]:
    return list(getattr(ex, "__notes__", ()))


async def handle_invalid_signature(
    _req: Request,
    resp: Response,
    ex: InvalidSignatureError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidSignatureError`` to an HTTP 401 JSON response."""
    resp.status = falcon.HTTP_401
    resp.media = {"title": "Invalid signature", "description": str(ex)}


async def handle_invalid_payload(
    _req: Request,
    resp: Response,
    ex: InvalidPayloadError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidPayloadError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    resp.media = {"title": "Invalid payload", "description": str(ex)}


async def handle_bot_run_failed(
    _req: Request,
    resp: Response,
    ex: Exception,
    _params: dict[str, typ.Any],
) -> None:
    """Map a failed bot run to an HTTP 502 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The remote or configuration failure that ended the run. Its notes
        carry the decision log recorded before the failure.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_502
    resp.media = {
        "title": "Bot run failed",
        "error": type(ex).__name__,
        "description": str(ex),
        "log": _decision_log(ex),
    }


async def handle_timeout(
    _req: Request,
    resp: Response,
    ex: TimeoutError,
    _params: dict[str, typ.Any],
) -> None:
    """Map a run that exceeded its deadline to an HTTP 504 JSON response."""
    resp.status = falcon.HTTP_504
    resp.media = {
        "title": "Bot run timed out",
        "description": str(ex) or "event handling exceeded its deadline",
        "log": _decision_log(ex),
    }


def register_error_handlers(app: App) -> None:
    """Install every handler defined here on ``app``."""
    app.add_error_handler(InvalidSignatureError, handle_invalid_signature)
    app.add_error_handler(InvalidPayloadError, handle_invalid_payload)
    for error_type in _BOT_RUN_FAILURES:
        app.add_error_handler(error_type, handle_bot_run_failed)
    app.add_error_handler(TimeoutError, handle_timeout)
