"""GitHub webhook resource.

``POST /webhooks/github`` accepts ``check_run`` deliveries. Completed check
runs are either handled inline under a deadline, answering with the chosen
action and its decision log, or handed to the Dramatiq actor and
acknowledged with 202.

Usage
-----
Register the resource on the Falcon app::

    app.add_route(
        "/webhooks/github",
        GitHubWebhookResource(WebhookDependencies(engine=engine, settings=settings)),
    )

"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses as dc
import hashlib
import hmac
import typing as typ

import falcon

from ballet_bot.api.errors import InvalidSignatureError
from ballet_bot.logging import get_logger, log_debug, log_info
from ballet_bot.policy.events import (
    CHECK_RUN_EVENT,
    COMPLETED_ACTION,
    CheckRunEvent,
    decode_payload,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from ballet_bot.config.settings import BotSettings
    from ballet_bot.policy.engine import EventOutcome, PolicyEngine

__all__ = [
    "DELIVERY_HEADER",
    "EVENT_HEADER",
    "SIGNATURE_HEADER",
    "Enqueue",
    "GitHubWebhookResource",
    "WebhookDependencies",
    "sign_payload",
    "verify_signature",
]

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"
_SIGNATURE_PREFIX = "sha256="
_PING_EVENT = "ping"

Enqueue = cabc.Callable[[str, str], None]


def sign_payload(secret: str, body: bytes) -> str:
    """Return the ``X-Hub-Signature-256`` value GitHub sends for ``body``."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{_SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, header: str | None) -> None:
    """Check ``header`` against the HMAC of ``body``.

    Raises
    ------
    InvalidSignatureError
        If the header is absent or does not match.

    """
    if not header or not header.startswith(_SIGNATURE_PREFIX):
        raise InvalidSignatureError.missing()
    if not hmac.compare_digest(sign_payload(secret, body), header):
        raise InvalidSignatureError.mismatch()


@dc.dataclass(frozen=True, slots=True)
class WebhookDependencies:
    """Collaborators of :class:`GitHubWebhookResource`.

    Attributes
    ----------
    settings
        Webhook secret, deadline and dispatch mode.
    engine
        Engine used for inline dispatch.
    enqueue
        Callable taking ``(payload, delivery_id)`` used for queue dispatch.

    """

    settings: BotSettings
    engine: PolicyEngine | None = None
    enqueue: Enqueue | None = None


def _serialize_outcome(outcome: EventOutcome) -> dict[str, typ.Any]:
    return {
        "status": "done",
        "delivery_id": outcome.delivery_id,
        "action": outcome.action.value,
        "redundant": list(outcome.redundant),
        "pruning_commit": outcome.pruning.commit_sha if outcome.pruning else None,
        "log": list(outcome.log),
    }


class GitHubWebhookResource:
    """Resource receiving GitHub webhook deliveries."""

    def __init__(self, dependencies: WebhookDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._settings = dependencies.settings
        self._engine = dependencies.engine
        self._enqueue = dependencies.enqueue

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /webhooks/github requests.

        Parameters
        ----------
        req
            Falcon request carrying the raw webhook body and headers.
        resp
            Falcon response object.

        """
        body = await req.stream.read()
        if self._settings.webhook_secret is not None:
            verify_signature(
                self._settings.webhook_secret, body, req.get_header(SIGNATURE_HEADER)
            )

        event_name = req.get_header(EVENT_HEADER) or ""
        delivery_id = req.get_header(DELIVERY_HEADER) or "unknown"
        if event_name == _PING_EVENT:
            resp.media = {"status": "pong", "delivery_id": delivery_id}
            resp.status = falcon.HTTP_200
            return
        if event_name != CHECK_RUN_EVENT:
            self._ignore(resp, delivery_id, f"event {event_name or '<none>'}")
            return

        payload = decode_payload(body)
        if payload.action != COMPLETED_ACTION:
            self._ignore(resp, delivery_id, f"check_run action {payload.action}")
            return
        event = CheckRunEvent.from_payload(payload, delivery_id=delivery_id)

        if self._settings.dispatch == "queue" and self._enqueue is not None:
            self._enqueue(body.decode(), delivery_id)
            log_info(logger, "Queued delivery %s for %s", delivery_id, event.repo.slug)
            resp.media = {"status": "queued", "delivery_id": delivery_id}
            resp.status = falcon.HTTP_202
            return

        engine = typ.cast("PolicyEngine", self._engine)
        async with asyncio.timeout(self._settings.deadline_s):
            outcome = await engine.handle(event)
        resp.media = _serialize_outcome(outcome)
        resp.status = falcon.HTTP_200

    @staticmethod
    def _ignore(resp: Response, delivery_id: str, what: str) -> None:
        log_debug(logger, "Ignoring %s (delivery %s)", what, delivery_id)
        resp.media = {"status": "ignored", "delivery_id": delivery_id}
        resp.status = falcon.HTTP_202
