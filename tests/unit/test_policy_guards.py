"""Unit tests for guard evaluation and error categorisation."""

from __future__ import annotations

import pytest

from ballet_bot.ci import CIProviderError
from ballet_bot.config import ProjectConfig, ProjectConfigError
from ballet_bot.config.project import GitHubOptions
from ballet_bot.github import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    RefConflictError,
)
from ballet_bot.policy import (
    CLOSE_GUARDS,
    MERGE_GUARDS,
    PRUNE_GUARDS,
    Action,
    DecisionLog,
    ErrorCategory,
    EventContext,
    categorize_error,
    permits,
)
from ballet_bot.pruning import PublishError, RedundancyComputationError
from tests.helpers import run_async
from tests.helpers.builders import (
    BUILD_ID,
    FakeCIProvider,
    build_record,
    check_run_event,
)
from tests.helpers.fake_store import FakeObjectStore


def _context(
    *,
    state: str = "passed",
    config: ProjectConfig | None = None,
    head_branch: str = "feature-44",
) -> tuple[EventContext, FakeObjectStore, FakeCIProvider]:
    store = FakeObjectStore()
    store.add_pull_request(44, {"features/a.py": "added"})
    ci = FakeCIProvider(
        builds={BUILD_ID: build_record(pull_request_number=44, state=state)}
    )
    ctx = EventContext(
        check_run_event(head_branch=head_branch),
        build_id=BUILD_ID,
        store=store,
        ci=ci,
        config=config or ProjectConfig(),
        log=DecisionLog(),
    )
    return ctx, store, ci


def test_guard_lists_are_named_in_order() -> None:
    """Guard names document the evaluation order of each action."""
    assert [guard.name for guard in MERGE_GUARDS] == [
        "pull_request",
        "build_passed",
        "feature_proposal",
        "auto_merge",
    ]
    assert [guard.name for guard in CLOSE_GUARDS] == [
        "pull_request",
        "build_failed",
        "feature_proposal",
        "auto_close",
    ]
    assert [guard.name for guard in PRUNE_GUARDS] == [
        "merge_on_base",
        "build_passed",
        "pruning_enabled",
    ]


def test_permits_records_first_failing_reason_only() -> None:
    """Evaluation stops at the first refusal."""
    ctx, store, _ = _context(state="failed")

    assert not run_async(lambda: permits(Action.MERGE, ctx))

    assert list(ctx.log) == ["Not merging because not passing"]
    assert store.count("get_pull_request") == 0


def test_permits_without_refusal_logs_nothing() -> None:
    """Permitted actions leave no decision log line."""
    ctx, _, _ = _context()

    assert run_async(lambda: permits(Action.MERGE, ctx))
    assert len(ctx.log) == 0


def test_build_and_proposal_are_fetched_once() -> None:
    """All guard lists share one snapshot of the build and the pull request."""
    ctx, store, ci = _context(
        config=ProjectConfig(github=GitHubOptions(auto_merge_accepted_features="no"))
    )

    async def _evaluate() -> list[bool]:
        return [await permits(action, ctx) for action in Action if action is not Action.NONE]

    assert run_async(_evaluate) == [False, False, False]
    assert ci.requested == [BUILD_ID]
    assert store.count("get_pull_request") == 1
    assert list(ctx.log) == [
        "Not merging because config",
        "Not closing because passed all checks",
        "Not pruning because not on master on merge",
    ]


def test_prune_on_base_requires_a_merge_commit() -> None:
    """The head commit is inspected only on the base branch."""
    ctx, store, _ = _context(head_branch="master")
    tree = store.put_files({"a.py": "a\n"})
    sha = store.put_commit(tree)
    ctx.event = check_run_event(head_sha=sha)

    assert not run_async(lambda: permits(Action.PRUNE, ctx))
    assert list(ctx.log) == ["Not pruning because not on master on merge"]
    assert store.count("get_commit") == 1


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (GitHubAPIError("boom", status_code=502), ErrorCategory.TRANSIENT),
        (GitHubAPIError("transport"), ErrorCategory.TRANSIENT),
        (GitHubAPIError("forbidden", status_code=403), ErrorCategory.CLIENT_ERROR),
        (GitHubResponseShapeError("drift"), ErrorCategory.SCHEMA_DRIFT),
        (GitHubConfigError("token"), ErrorCategory.CONFIGURATION),
        (ProjectConfigError(["bad"]), ErrorCategory.CONFIGURATION),
        (CIProviderError("travis"), ErrorCategory.CI_PROVIDER),
        (TimeoutError(), ErrorCategory.TIMEOUT),
        (RuntimeError("?"), ErrorCategory.UNKNOWN),
    ],
)
def test_categorize_error(exc: BaseException, expected: ErrorCategory) -> None:
    """Errors map onto alerting categories."""
    assert categorize_error(exc) is expected


def test_categorize_publish_conflict() -> None:
    """A refused fast-forward is a concurrent update."""
    conflict = RefConflictError.moved("master", "a" * 40, "b" * 40)
    exc = PublishError.ref_conflict("master", conflict, "c" * 40)

    assert categorize_error(exc) is ErrorCategory.CONCURRENT_UPDATE


def test_categorize_wrapped_errors_by_cause() -> None:
    """Pruning errors inherit the category of their remote cause."""
    exc = RedundancyComputationError.listing_failed("ballet/demo", "master")
    exc.__cause__ = GitHubAPIError("unavailable", status_code=503)

    assert categorize_error(exc) is ErrorCategory.TRANSIENT
