"""Work out which open feature proposals an accepted feature supersedes.

The relation between features is a pluggable :class:`RedundancyPolicy`.
The default treats proposals of the same feature path as redundant; a
repository may widen that through ``ballet.yml``.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import re
import typing as typ

import httpx

from ballet_bot.github.errors import GitHubAPIError, GitHubResponseShapeError
from ballet_bot.logging import get_logger, log_debug

from .classification import DEFAULT_BOILERPLATE, explain
from .errors import RedundancyComputationError
from .models import (
    AcceptedFeature,
    Feature,
    PullRequestProposal,
    RedundancySet,
    RedundantProposal,
)
from .trees import changed_files

if typ.TYPE_CHECKING:
    from ballet_bot.config.project import RedundancyOptions
    from ballet_bot.github.client import RemoteObjectStore
    from ballet_bot.github.models import GitCommit, RepoRef

logger = get_logger(__name__)

_MERGE_MESSAGE = re.compile(r"^Merge pull request #(?P<number>\d+)\b")
_REMOTE_ERRORS = (GitHubAPIError, GitHubResponseShapeError, httpx.HTTPError)


class RedundancyPolicy(typ.Protocol):
    """Relation deciding whether one feature supersedes another."""

    def supersedes(self, accepted: Feature, candidate: Feature) -> bool:
        """Return True when ``accepted`` makes ``candidate`` redundant."""
        ...


class SamePathPolicy:
    """Features with identical paths are redundant."""

    def supersedes(self, accepted: Feature, candidate: Feature) -> bool:
        """Return True when both features live at the same path."""
        return accepted.path == candidate.path


class SameNamePolicy:
    """Features with the same module name are redundant, wherever they live."""

    def supersedes(self, accepted: Feature, candidate: Feature) -> bool:
        """Return True when both feature modules share a name."""
        return accepted.name == candidate.name


@dataclasses.dataclass(frozen=True, slots=True)
class EquivalenceClassPolicy:
    """Features listed together in one class supersede each other."""

    classes: tuple[frozenset[str], ...]

    @classmethod
    def from_paths(
        cls, classes: cabc.Iterable[cabc.Iterable[str]]
    ) -> EquivalenceClassPolicy:
        """Build the policy from lists of feature paths."""
        return cls(tuple(frozenset(paths) for paths in classes))

    def supersedes(self, accepted: Feature, candidate: Feature) -> bool:
        """Return True when some class contains both feature paths."""
        return any(
            accepted.path in members and candidate.path in members
            for members in self.classes
        )


@dataclasses.dataclass(frozen=True, slots=True)
class AnyOfPolicy:
    """Union of several policies."""

    policies: tuple[RedundancyPolicy, ...]

    def supersedes(self, accepted: Feature, candidate: Feature) -> bool:
        """Return True when any member policy says so."""
        return any(policy.supersedes(accepted, candidate) for policy in self.policies)


def policy_from_options(options: RedundancyOptions) -> RedundancyPolicy:
    """Return the policy described by the ``redundancy`` config section."""
    base: RedundancyPolicy = (
        SameNamePolicy() if options.policy == "same_name" else SamePathPolicy()
    )
    if not options.equivalence_classes:
        return base
    return AnyOfPolicy(
        (base, EquivalenceClassPolicy.from_paths(options.equivalence_classes))
    )


def resolve(  # noqa: PLR0913
    accepted: Feature,
    open_proposals: cabc.Iterable[PullRequestProposal],
    *,
    base_branch: str,
    accepted_number: int | None = None,
    policy: RedundancyPolicy | None = None,
    boilerplate: cabc.Collection[str] = DEFAULT_BOILERPLATE,
) -> RedundancySet:
    """Return the open proposals that ``accepted`` makes redundant.

    Proposals targeting another base branch, the accepted proposal itself
    and proposals that are not feature-proposing are never redundant. The
    result only depends on the inputs, not on their order.
    """
    relation = policy or SamePathPolicy()
    entries: list[RedundantProposal] = []
    for proposal in open_proposals:
        if proposal.base_branch != base_branch:
            continue
        if accepted_number is not None and proposal.number == accepted_number:
            continue
        feature = explain(proposal, boilerplate=boilerplate).feature
        if feature is None:
            continue
        if relation.supersedes(accepted, feature):
            entries.append(RedundantProposal(proposal=proposal, feature=feature))
    entries.sort(key=lambda entry: entry.proposal.number)
    return RedundancySet(accepted=accepted, entries=tuple(entries))


async def collect_open_proposals(
    store: RemoteObjectStore, repo: RepoRef, base_branch: str
) -> list[PullRequestProposal]:
    """Fetch every open pull request into ``base_branch`` with its files.

    Raises
    ------
    RedundancyComputationError
        If any listing call fails; no partial result is returned.

    """
    try:
        pull_requests = await store.list_open_pull_requests(repo, base=base_branch)
        proposals = [
            PullRequestProposal.from_github(
                pull_request,
                await store.list_pull_request_files(repo, pull_request.number),
            )
            for pull_request in pull_requests
        ]
    except _REMOTE_ERRORS as exc:
        raise RedundancyComputationError.listing_failed(repo.slug, base_branch) from exc
    log_debug(
        logger,
        "Found %d open proposals into %s for %s",
        len(proposals),
        base_branch,
        repo.slug,
    )
    return proposals


def merged_pull_request_number(message: str) -> int | None:
    """Return the pull request number recorded in a GitHub merge message."""
    match = _MERGE_MESSAGE.match(message)
    return int(match["number"]) if match else None


async def find_accepted_feature(
    store: RemoteObjectStore,
    repo: RepoRef,
    merge_commit: GitCommit,
    *,
    base_branch: str,
    boilerplate: cabc.Collection[str] = DEFAULT_BOILERPLATE,
) -> AcceptedFeature | None:
    """Return the feature ``merge_commit`` brought into the base branch.

    The change is read from the merge commit's first parent to the merge
    commit itself and classified like any other proposal. ``None`` means
    the merge did not add exactly one feature.

    Raises
    ------
    RedundancyComputationError
        If the trees cannot be read.

    """
    if not merge_commit.parents:
        return None
    try:
        first_parent = await store.get_commit(repo, merge_commit.parents[0].sha)
        changes = await changed_files(
            store, repo, first_parent.tree.sha, merge_commit.tree.sha
        )
    except _REMOTE_ERRORS as exc:
        raise RedundancyComputationError.accepted_unknown(
            repo.slug, merge_commit.sha
        ) from exc

    number = merged_pull_request_number(merge_commit.message)
    proposal = PullRequestProposal(
        number=number or 0,
        changed_files=tuple(changes),
        head_sha=merge_commit.sha,
        base_branch=base_branch,
    )
    feature = explain(proposal, boilerplate=boilerplate).feature
    if feature is None:
        return None
    return AcceptedFeature(
        feature=feature, merge_sha=merge_commit.sha, pull_request_number=number
    )
