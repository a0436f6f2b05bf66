"""Process-wide settings read from the environment.

Usage
-----
>>> import os
>>> os.environ["BALLET_BOT_DEADLINE_SECONDS"] = "30"
>>> BotSettings.from_env().deadline_s
30

"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ

Dispatch = typ.Literal["inline", "queue"]
_DISPATCH_MODES: tuple[Dispatch, ...] = ("inline", "queue")


@dc.dataclass(frozen=True, slots=True)
class BotSettings:
    """Settings for the webhook service.

    Attributes
    ----------
    webhook_secret
        Shared secret used to verify ``X-Hub-Signature-256``. When ``None``
        signatures are not checked.
    deadline_s
        Seconds an inline event handler may run before it is cancelled.
        Default is 60.
    dispatch
        ``inline`` handles the event inside the webhook request; ``queue``
        hands it to the Dramatiq actor and acknowledges immediately.

    """

    webhook_secret: str | None = None
    deadline_s: int = 60
    dispatch: Dispatch = "inline"

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @staticmethod
    def _parse_dispatch(raw: str) -> Dispatch:
        value = raw.strip().lower() or "inline"
        for mode in _DISPATCH_MODES:
            if value == mode:
                return mode
        msg = f"BALLET_BOT_DISPATCH must be one of {_DISPATCH_MODES}, got: {raw!r}"
        raise ValueError(msg)

    @classmethod
    def from_env(cls) -> BotSettings:
        """Create settings from environment variables.

        Reads ``BALLET_BOT_WEBHOOK_SECRET``, ``BALLET_BOT_DEADLINE_SECONDS``
        and ``BALLET_BOT_DISPATCH``.

        Raises
        ------
        ValueError
            If the deadline is not a positive integer or the dispatch mode
            is unknown.

        """
        secret = os.environ.get("BALLET_BOT_WEBHOOK_SECRET", "").strip() or None
        return cls(
            webhook_secret=secret,
            deadline_s=cls._parse_positive_int("BALLET_BOT_DEADLINE_SECONDS", 60),
            dispatch=cls._parse_dispatch(os.environ.get("BALLET_BOT_DISPATCH", "")),
        )
