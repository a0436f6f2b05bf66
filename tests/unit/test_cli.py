"""Unit tests for the ``ballet-bot-replay`` command."""

from __future__ import annotations

import json
import typing as typ

from ballet_bot import cli
from ballet_bot.github import GitHubAPIError
from ballet_bot.policy import PolicyEngine
from tests.helpers.builders import (
    BUILD_ID,
    FakeCIProvider,
    ResourceTracker,
    build_record,
    check_run_payload,
)
from tests.helpers.fake_store import FakeObjectStore

if typ.TYPE_CHECKING:
    from pathlib import Path

    import pytest


def _install_engine(monkeypatch: pytest.MonkeyPatch) -> FakeObjectStore:
    store = FakeObjectStore()
    store.add_pull_request(44, {"features/contrib/bob/size.py": "added"})
    tracker = ResourceTracker(
        store=store,
        ci=FakeCIProvider(builds={BUILD_ID: build_record(pull_request_number=44)}),
    )
    monkeypatch.setattr(cli, "create_engine_from_env", lambda: PolicyEngine(tracker))
    monkeypatch.setattr(cli, "configure_logging", lambda level: ("INFO", False))
    return store


def _payload_file(tmp_path: Path, payload: dict[str, typ.Any]) -> Path:
    path = tmp_path / "check_run.json"
    path.write_text(json.dumps(payload))
    return path


def test_replay_prints_log_and_action(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A handled event exits 0 and prints its decision log."""
    store = _install_engine(monkeypatch)
    path = _payload_file(tmp_path, check_run_payload(head_branch="feature-44"))

    assert cli.main([str(path), "--delivery-id", "replay-1"]) == 0

    out = capsys.readouterr().out
    assert "  - Not closing because passed all checks" in out
    assert out.rstrip().endswith("Action: merge")
    assert store.pulls[44].pull_request.merged


def test_replay_failure_prints_notes(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A failed event exits 1 and prints the log attached to the error."""
    store = _install_engine(monkeypatch)
    store.failures["merge_pull_request"] = GitHubAPIError(
        "GitHub REST PUT merge failed with HTTP 500", status_code=500
    )
    path = _payload_file(tmp_path, check_run_payload(head_branch="feature-44"))

    assert cli.main([str(path)]) == 1

    out = capsys.readouterr().out
    assert "failed: GitHubAPIError" in out
    assert "  - Not closing because passed all checks" in out


def test_replay_rejects_invalid_payload(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Payloads that are not check runs fail before the engine runs."""
    _install_engine(monkeypatch)
    path = _payload_file(tmp_path, {"action": "completed"})

    assert cli.main([str(path)]) == 1
    assert "InvalidPayloadError" in capsys.readouterr().out
