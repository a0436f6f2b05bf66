"""Dramatiq actor handling queued check run events.

Used when the webhook service runs with ``BALLET_BOT_DISPATCH=queue``: the
webhook acknowledges the delivery and a worker handles it here.

Usage
-----
>>> handle_check_run_job.send(
...     payload='{"action": "completed", ...}',
...     delivery_id="72d3162e-cc78-11e3-81ab-4c9367dc0958",
... )

"""

from __future__ import annotations

import asyncio
import threading
import typing as typ

import dramatiq

from ballet_bot.config.settings import BotSettings
from ballet_bot.policy._broker import ensure_broker_configured
from ballet_bot.policy.events import parse_check_run_event
from ballet_bot.policy.factory import create_engine_from_env

if typ.TYPE_CHECKING:
    from ballet_bot.policy.engine import EventOutcome, PolicyEngine
    from ballet_bot.policy.events import CheckRunEvent

_ENGINE_LOCK = threading.Lock()
_engine: PolicyEngine | None = None


def _get_or_create_engine() -> PolicyEngine:
    """Return the process-wide engine, creating it on first use.

    Thread-safe: Dramatiq runs actors on several worker threads.
    """
    global _engine
    with _ENGINE_LOCK:
        if _engine is None:
            _engine = create_engine_from_env()
        return _engine


def set_engine(engine: PolicyEngine | None) -> None:
    """Replace the engine used by the actor; ``None`` resets it."""
    global _engine
    with _ENGINE_LOCK:
        _engine = engine


ensure_broker_configured()


@dramatiq.actor(max_retries=0)
def handle_check_run_job(payload: str, delivery_id: str) -> dict[str, typ.Any]:
    """Handle one queued ``check_run`` webhook delivery.

    Failed events are not retried; a failed pruning push is reported and an
    operator re-triggers it with ``ballet-bot-replay``. The engine runs under
    the same ``BALLET_BOT_DEADLINE_SECONDS`` deadline as inline dispatch.

    Parameters
    ----------
    payload
        Raw JSON body of the webhook.
    delivery_id
        ``X-GitHub-Delivery`` header of the webhook.

    Returns
    -------
    dict[str, Any]
        The chosen action and the decision log.

    Raises
    ------
    TimeoutError
        If handling the event exceeds the deadline.

    """
    event = parse_check_run_event(payload, delivery_id=delivery_id)
    deadline_s = BotSettings.from_env().deadline_s
    outcome = asyncio.run(_handle(_get_or_create_engine(), event, deadline_s))
    return {"action": outcome.action.value, "log": list(outcome.log)}


async def _handle(
    engine: PolicyEngine, event: CheckRunEvent, deadline_s: int
) -> EventOutcome:
    async with asyncio.timeout(deadline_s):
        return await engine.handle(event)
