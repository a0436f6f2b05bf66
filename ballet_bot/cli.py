"""Replay a saved ``check_run`` webhook payload through the policy engine.

Operators use this to re-trigger an event after a reported failure, such as
a pruning commit that was refused because the base branch moved.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import typing as typ
import uuid
from pathlib import Path

from ballet_bot.ci.errors import CIProviderError
from ballet_bot.config.errors import ProjectConfigError
from ballet_bot.github.errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
)
from ballet_bot.logging import configure_logging
from ballet_bot.policy.events import InvalidPayloadError, parse_check_run_event
from ballet_bot.policy.factory import create_engine_from_env
from ballet_bot.pruning.errors import PublishError, RedundancyComputationError

if typ.TYPE_CHECKING:
    from ballet_bot.policy.engine import EventOutcome, PolicyEngine
    from ballet_bot.policy.events import CheckRunEvent

_REPLAY_FAILURES = (
    InvalidPayloadError,
    GitHubConfigError,
    PublishError,
    RedundancyComputationError,
    GitHubAPIError,
    GitHubResponseShapeError,
    CIProviderError,
    ProjectConfigError,
    TimeoutError,
)


def main(argv: list[str] | None = None) -> int:
    """Handle a saved webhook payload and print the decision log.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 when the event was handled, 1 when it failed.

    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("payload", type=Path, help="JSON body of a check_run webhook")
    parser.add_argument(
        "--delivery-id",
        default=None,
        help="Delivery id to log the replay under (default: a fresh uuid)",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Seconds to allow before the replay is cancelled",
    )
    args = parser.parse_args(argv)

    configure_logging(os.environ.get("BALLET_BOT_LOG_LEVEL", "INFO"))
    delivery_id = args.delivery_id or f"replay-{uuid.uuid4()}"

    try:
        event = parse_check_run_event(
            args.payload.read_bytes(), delivery_id=delivery_id
        )
        engine = create_engine_from_env()
        outcome = asyncio.run(_handle(engine, event, args.deadline))
    except _REPLAY_FAILURES as exc:
        print(f"Replay of {args.payload} failed: {type(exc).__name__}: {exc}")
        for line in getattr(exc, "__notes__", ()):
            print(f"  - {line}")
        return 1

    for line in outcome.log:
        print(f"  - {line}")
    print(f"Action: {outcome.action}")
    return 0


async def _handle(
    engine: PolicyEngine, event: CheckRunEvent, deadline: float | None
) -> EventOutcome:
    async with asyncio.timeout(deadline):
        return await engine.handle(event)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
