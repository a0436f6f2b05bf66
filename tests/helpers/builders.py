"""Builders for webhook payloads, CI builds and seeded repositories."""

from __future__ import annotations

import contextlib
import dataclasses
import typing as typ

from ballet_bot.ci.errors import CIProviderError
from ballet_bot.ci.models import BuildBranch, BuildCommit, BuildRecord
from ballet_bot.github.models import RepoRef
from ballet_bot.policy.engine import EventResources
from ballet_bot.policy.events import CheckRunEvent

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .fake_store import FakeObjectStore

REPO = RepoRef(owner="ballet", name="predict-house-prices")
BUILD_ID = "145322841"
DETAILS_URL = f"https://travis-ci.com/ballet/predict-house-prices/builds/{BUILD_ID}"


def check_run_payload(
    *,
    head_sha: str = "a" * 40,
    head_branch: str | None = "master",
    action: str = "completed",
    details_url: str | None = DETAILS_URL,
) -> dict[str, typ.Any]:
    """Return a ``check_run`` webhook body as GitHub sends it."""
    return {
        "action": action,
        "check_run": {
            "id": 128620228,
            "name": "Travis CI - Pull Request",
            "head_sha": head_sha,
            "status": "completed",
            "conclusion": "success",
            "details_url": details_url,
            "check_suite": {"id": 118578147, "head_branch": head_branch},
        },
        "repository": {
            "full_name": REPO.slug,
            "html_url": f"https://github.com/{REPO.slug}",
        },
    }


def check_run_event(
    *,
    head_sha: str = "a" * 40,
    head_branch: str | None = "master",
    details_url: str | None = DETAILS_URL,
    delivery_id: str = "delivery-1",
) -> CheckRunEvent:
    """Return a parsed completed check run event."""
    return CheckRunEvent(
        delivery_id=delivery_id,
        repo=REPO,
        repo_url=f"https://github.com/{REPO.slug}",
        details_url=details_url,
        head_branch=head_branch,
        head_sha=head_sha,
    )


def build_record(
    *,
    event_type: str = "pull_request",
    state: str = "passed",
    pull_request_number: int | None = None,
    branch: str = "master",
    sha: str = "a" * 40,
    message: str = "Add feature",
) -> BuildRecord:
    """Return a CI build snapshot."""
    return BuildRecord(
        id=int(BUILD_ID),
        event_type=event_type,
        commit=BuildCommit(sha=sha, message=message),
        branch=BuildBranch(name=branch),
        state=state,
        pull_request_number=pull_request_number,
    )


@dataclasses.dataclass(slots=True)
class FakeCIProvider:
    """CI provider returning canned builds by id."""

    builds: dict[str, BuildRecord] = dataclasses.field(default_factory=dict)
    requested: list[str] = dataclasses.field(default_factory=list)

    async def get_build(self, build_id: str) -> BuildRecord:
        """Return the canned build or fail like an HTTP 404."""
        self.requested.append(build_id)
        try:
            return self.builds[build_id]
        except KeyError:
            raise CIProviderError.http_error(build_id, 404) from None

    async def does_build_pass_all_checks(self, build_id: str) -> bool:
        """Return True when the canned build passed."""
        return (await self.get_build(build_id)).passed


@dataclasses.dataclass(slots=True)
class ResourceTracker:
    """Resource factory over fakes that records acquisition and release."""

    store: FakeObjectStore
    ci: FakeCIProvider
    opened: int = 0
    closed: int = 0

    @contextlib.asynccontextmanager
    async def __call__(
        self, event: CheckRunEvent
    ) -> cabc.AsyncIterator[EventResources]:
        """Yield the fakes for one event and count the release."""
        self.opened += 1
        try:
            yield EventResources(store=self.store, ci=self.ci)
        finally:
            self.closed += 1


@dataclasses.dataclass(frozen=True, slots=True)
class MergedRepository:
    """Shas of a repository seeded with a merged feature."""

    base_sha: str
    feature_sha: str
    merge_sha: str


def seed_merged_feature(
    store: FakeObjectStore,
    *,
    files: cabc.Mapping[str, str],
    feature_path: str,
    pull_request_number: int = 42,
    branch: str = "master",
) -> MergedRepository:
    """Seed ``branch`` with ``files`` and a merge commit adding ``feature_path``.

    The merge commit has two parents, records ``Merge pull request #N`` in
    its message and becomes the head of ``branch``.
    """
    base_tree = store.put_files(files)
    base_sha = store.put_commit(base_tree, message="Initial commit")
    merged_tree = store.put_files({**files, feature_path: "def feature(): ...\n"})
    feature_sha = store.put_commit(merged_tree, [base_sha], message="Add feature")
    merge_sha = store.put_commit(
        merged_tree,
        [base_sha, feature_sha],
        message=(
            f"Merge pull request #{pull_request_number} from contributor/feature\n\n"
            "Add feature"
        ),
    )
    store.refs[branch] = merge_sha
    return MergedRepository(base_sha=base_sha, feature_sha=feature_sha, merge_sha=merge_sha)
