"""Dramatiq broker plumbing for queue dispatch.

With ``BALLET_BOT_DISPATCH=queue`` the webhook service only enqueues
``check_run`` deliveries; a worker process runs the policy engine. Both
sides declare :func:`ballet_bot.policy.actor.handle_check_run_job`, and
declaring an actor needs a broker. This module makes sure one exists before
that happens, and only substitutes an in-memory ``StubBroker`` where
messages may safely be lost: under pytest or when an operator opts in.
"""

from __future__ import annotations

import os
import sys
import threading
import typing as typ

import dramatiq
from dramatiq.brokers.stub import StubBroker

if typ.TYPE_CHECKING:
    import collections.abc as cabc

ALLOW_STUB_ENV = "BALLET_BOT_ALLOW_STUB_BROKER"
_TRUTHY = frozenset({"1", "true", "yes"})
_PYTEST_ENV = ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS")

_BROKER_LOCK = threading.Lock()
_broker: dramatiq.Broker | None = None


def stub_broker_allowed(
    environ: cabc.Mapping[str, str] | None = None,
    modules: cabc.Container[str] | None = None,
) -> bool:
    """Return True when queued deliveries may go to an in-memory broker.

    Parameters
    ----------
    environ : Mapping[str, str] | None, optional
        Environment to inspect. ``None`` uses ``os.environ``.
    modules : Container[str] | None, optional
        Imported module names. ``None`` uses ``sys.modules``.

    Returns
    -------
    bool
        True when ``BALLET_BOT_ALLOW_STUB_BROKER`` is truthy or the process
        is a pytest run.

    """
    env = os.environ if environ is None else environ
    loaded = sys.modules if modules is None else modules
    if env.get(ALLOW_STUB_ENV, "").strip().lower() in _TRUTHY:
        return True
    return "pytest" in loaded or any(key in env for key in _PYTEST_ENV)


def _current_broker() -> dramatiq.Broker | None:
    try:
        return dramatiq.get_broker()
    except (ImportError, LookupError):
        # ImportError: the default RabbitMQ broker needs pika
        return None


def ensure_broker_configured() -> dramatiq.Broker:
    """Return the broker the check run actor is declared on.

    An already configured global broker wins. Otherwise a ``StubBroker`` is
    installed when :func:`stub_broker_allowed` permits it. Thread-safe and
    idempotent: Dramatiq workers may import the actor module from several
    threads.

    Returns
    -------
    dramatiq.Broker
        The global Dramatiq broker.

    Raises
    ------
    RuntimeError
        If no broker is configured and a stub is not allowed.

    """
    global _broker

    if _broker is not None:
        return _broker

    with _BROKER_LOCK:
        if _broker is not None:
            return _broker

        broker = _current_broker()
        if broker is None:
            if not stub_broker_allowed():
                message = (
                    "No Dramatiq broker configured for queue dispatch. "
                    f"Configure a broker or set {ALLOW_STUB_ENV}=1 for "
                    "local runs."
                )
                raise RuntimeError(message)
            broker = StubBroker()
            dramatiq.set_broker(broker)

        _broker = broker
        return broker
