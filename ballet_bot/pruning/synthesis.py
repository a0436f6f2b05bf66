"""Publish a commit that removes redundant features from the base branch.

The commit is synthesised entirely from remote objects: the base tree is
rewritten with :func:`~ballet_bot.pruning.trees.derive_tree`, a single-parent
commit is created on top of the branch head, and the branch is moved by a
compare-and-swap ref update. A branch that moved in the meantime aborts the
run; it is never rebased and retried.
"""

from __future__ import annotations

import collections.abc as cabc
import types
import typing as typ

import httpx

from ballet_bot.github.errors import (
    GitHubAPIError,
    GitHubResponseShapeError,
    RefConflictError,
)
from ballet_bot.logging import get_logger, log_info, log_warning

from .errors import PublishError
from .models import PruningCommit, PruningOutcome, PublishMode
from .trees import derive_tree

if typ.TYPE_CHECKING:
    from ballet_bot.github.client import RemoteObjectStore
    from ballet_bot.github.models import RepoRef

    from .models import Feature

logger = get_logger(__name__)

BOT_AUTHOR: cabc.Mapping[str, str] = types.MappingProxyType(
    {"name": "ballet-bot", "email": "ballet-project@mit.edu"}
)
PRUNE_BRANCH_PREFIX = "ballet-bot/prune-"
_SHORT_SHA = 7
_REMOTE_ERRORS = (GitHubAPIError, GitHubResponseShapeError, httpx.HTTPError)


def pruning_message(features: cabc.Sequence[Feature]) -> str:
    """Return the commit message for removing ``features``."""
    lines = ["Prune redundant features", ""]
    lines.extend(f"- remove {feature.path}" for feature in features)
    return "\n".join(lines) + "\n"


def pruning_pull_request_body(features: cabc.Sequence[Feature], branch: str) -> str:
    """Return the description of a pruning pull request."""
    listed = "\n".join(f"- `{feature.path}`" for feature in features)
    return (
        f"The following features were made redundant by a feature accepted "
        f"into `{branch}` and are removed by this pull request:\n\n{listed}\n"
    )


class PruningCommitSynthesizer:
    """Create and publish pruning commits through a remote object store."""

    def __init__(
        self,
        store: RemoteObjectStore,
        *,
        author: cabc.Mapping[str, str] = BOT_AUTHOR,
    ) -> None:
        """Configure the synthesizer with the store it publishes to."""
        self._store = store
        self._author = author

    async def synthesize(  # noqa: PLR0913
        self,
        repo: RepoRef,
        *,
        branch: str,
        base_head: str,
        features: cabc.Sequence[Feature],
        mode: PublishMode = PublishMode.BRANCH,
    ) -> PruningOutcome:
        """Remove ``features`` from ``branch`` in a single new commit.

        Parameters
        ----------
        repo
            Repository to publish to.
        branch
            Base branch the features are removed from.
        base_head
            Commit ``branch`` is expected to point at; it becomes the sole
            parent of the pruning commit.
        features
            Redundant features; must not be empty.
        mode
            Move ``branch`` itself, or push a new branch and open a pull
            request against ``branch``.

        Returns
        -------
        PruningOutcome
            What was removed and where the commit went. No commit is made
            when none of the feature paths exist on the branch.

        Raises
        ------
        ValueError
            If ``features`` is empty.
        PublishError
            If any remote call fails, including a concurrent branch move.

        """
        if not features:
            msg = "synthesize requires at least one redundant feature"
            raise ValueError(msg)

        ordered = sorted(set(features))
        try:
            base_commit = await self._store.get_commit(repo, base_head)
            derived = await derive_tree(
                self._store,
                repo,
                base_commit.tree.sha,
                [feature.path for feature in ordered],
            )
        except _REMOTE_ERRORS as exc:
            raise PublishError.failed("derive_tree", exc) from exc

        if not derived.changed:
            log_info(
                logger,
                "Nothing to prune on %s@%s; paths already absent: %s",
                repo.slug,
                branch,
                ", ".join(derived.missing),
            )
            return PruningOutcome(removed=(), missing=derived.missing)

        removed = [feature for feature in ordered if feature.path in derived.removed]
        commit = PruningCommit(
            parents=(base_head,),
            tree=derived.sha,
            message=pruning_message(removed),
            author=self._author,
        )
        try:
            created = await self._store.create_commit(
                repo,
                message=commit.message,
                tree=commit.tree,
                parents=commit.parents,
                author=commit.author,
            )
        except _REMOTE_ERRORS as exc:
            raise PublishError.failed("create_commit", exc) from exc

        if mode is PublishMode.PULL_REQUEST:
            return await self._open_pull_request(
                repo,
                branch=branch,
                commit_sha=created.sha,
                removed=removed,
                missing=derived.missing,
            )
        return await self._move_branch(
            repo,
            branch=branch,
            base_head=base_head,
            commit_sha=created.sha,
            outcome=PruningOutcome(
                removed=derived.removed,
                missing=derived.missing,
                commit_sha=created.sha,
                published_to=branch,
            ),
        )

    async def _move_branch(  # noqa: PLR0913
        self,
        repo: RepoRef,
        *,
        branch: str,
        base_head: str,
        commit_sha: str,
        outcome: PruningOutcome,
    ) -> PruningOutcome:
        try:
            await self._store.update_ref(
                repo, branch, commit_sha, expected_sha=base_head
            )
        except RefConflictError as exc:
            log_warning(
                logger,
                "Pruning commit %s for %s left unpublished: %s",
                commit_sha,
                repo.slug,
                exc,
            )
            raise PublishError.ref_conflict(branch, exc, commit_sha) from exc
        except _REMOTE_ERRORS as exc:
            raise PublishError.failed(
                "update_ref", exc, orphaned_commit=commit_sha
            ) from exc
        log_info(
            logger,
            "Published pruning commit %s to %s@%s removing %s",
            commit_sha,
            repo.slug,
            branch,
            ", ".join(outcome.removed),
        )
        return outcome

    async def _open_pull_request(  # noqa: PLR0913
        self,
        repo: RepoRef,
        *,
        branch: str,
        commit_sha: str,
        removed: cabc.Sequence[Feature],
        missing: tuple[str, ...],
    ) -> PruningOutcome:
        head = f"{PRUNE_BRANCH_PREFIX}{commit_sha[:_SHORT_SHA]}"
        try:
            await self._store.create_ref(repo, head, commit_sha)
        except _REMOTE_ERRORS as exc:
            raise PublishError.failed(
                "create_ref", exc, orphaned_commit=commit_sha
            ) from exc
        try:
            pull_request = await self._store.create_pull_request(
                repo,
                title="Prune redundant features",
                body=pruning_pull_request_body(removed, branch),
                head=head,
                base=branch,
            )
        except _REMOTE_ERRORS as exc:
            raise PublishError.failed("create_pull_request", exc) from exc
        log_info(
            logger,
            "Opened pruning pull request #%d on %s from %s",
            pull_request.number,
            repo.slug,
            head,
        )
        return PruningOutcome(
            removed=tuple(feature.path for feature in removed),
            missing=missing,
            commit_sha=commit_sha,
            published_to=head,
            pull_request_number=pull_request.number,
        )
