"""Typed ``check_run`` webhook events.

Raw webhook payloads are decoded once, here, into :class:`CheckRunEvent`;
nothing downstream inspects payload dictionaries.
"""

from __future__ import annotations

import dataclasses
import typing as typ

import msgspec

from ballet_bot.github.models import RepoRef

CHECK_RUN_EVENT = "check_run"
COMPLETED_ACTION = "completed"


class InvalidPayloadError(ValueError):
    """Raised when a webhook payload cannot be decoded into an event."""

    @classmethod
    def undecodable(cls, detail: object) -> InvalidPayloadError:
        """Return an error for a payload that failed schema conversion."""
        return cls(f"check_run payload is invalid: {detail}")


class _CheckSuite(msgspec.Struct, kw_only=True):
    head_branch: str | None = None


class _CheckRun(msgspec.Struct, kw_only=True):
    head_sha: str
    check_suite: _CheckSuite
    details_url: str | None = None
    name: str = ""


class _Repository(msgspec.Struct, kw_only=True):
    full_name: str
    html_url: str


class CheckRunPayload(msgspec.Struct, kw_only=True):
    """The parts of a ``check_run`` webhook payload the bot reads."""

    action: str
    check_run: _CheckRun
    repository: _Repository


@dataclasses.dataclass(frozen=True, slots=True)
class CheckRunEvent:
    """A completed check run, as seen by the policy engine.

    Attributes
    ----------
    delivery_id
        ``X-GitHub-Delivery`` of the webhook, used to correlate logs.
    repo
        Repository the check ran in.
    repo_url
        HTML URL of the repository.
    details_url
        CI provider URL for the build behind the check run.
    head_branch
        Branch of the check suite; ``None`` for pull requests from forks.
    head_sha
        Commit the check ran against.

    """

    delivery_id: str
    repo: RepoRef
    repo_url: str
    details_url: str | None
    head_branch: str | None
    head_sha: str

    @classmethod
    def from_payload(cls, payload: CheckRunPayload, *, delivery_id: str) -> CheckRunEvent:
        """Flatten a decoded payload into an event."""
        try:
            repo = RepoRef.from_full_name(payload.repository.full_name)
        except ValueError as exc:
            raise InvalidPayloadError.undecodable(exc) from exc
        return cls(
            delivery_id=delivery_id,
            repo=repo,
            repo_url=payload.repository.html_url,
            details_url=payload.check_run.details_url,
            head_branch=payload.check_run.check_suite.head_branch,
            head_sha=payload.check_run.head_sha,
        )


def decode_payload(raw: bytes | str | typ.Mapping[str, typ.Any]) -> CheckRunPayload:
    """Decode a JSON body (or an already-parsed mapping) into a payload.

    Raises
    ------
    InvalidPayloadError
        If the body is not valid JSON or lacks required fields.

    """
    try:
        if isinstance(raw, bytes | str):
            return msgspec.json.decode(raw, type=CheckRunPayload)
        return msgspec.convert(raw, type=CheckRunPayload)
    except (msgspec.ValidationError, msgspec.DecodeError) as exc:
        raise InvalidPayloadError.undecodable(exc) from exc


def parse_check_run_event(
    raw: bytes | str | typ.Mapping[str, typ.Any], *, delivery_id: str
) -> CheckRunEvent:
    """Decode ``raw`` and return the event it describes."""
    return CheckRunEvent.from_payload(decode_payload(raw), delivery_id=delivery_id)
