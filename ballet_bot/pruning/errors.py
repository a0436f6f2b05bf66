"""Errors raised while classifying, resolving and pruning features."""

from __future__ import annotations

import typing as typ

from ballet_bot.github.errors import ActionConflict

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class PruningError(Exception):
    """Base class for pruning errors."""


class ClassificationAmbiguous(PruningError):
    """A changed-file set that does not reduce to a single added feature file.

    The classifier returns this as part of its result instead of raising it;
    callers log it and treat the pull request as not feature-proposing.
    """

    @classmethod
    def no_feature_file(cls) -> ClassificationAmbiguous:
        """Return an ambiguity for proposals that only touch boilerplate."""
        return cls("no non-boilerplate files changed")

    @classmethod
    def multiple_files(cls, paths: cabc.Sequence[str]) -> ClassificationAmbiguous:
        """Return an ambiguity for proposals touching several files."""
        return cls(f"{len(paths)} non-boilerplate files changed: {', '.join(paths)}")

    @classmethod
    def not_added(cls, path: str, status: str) -> ClassificationAmbiguous:
        """Return an ambiguity for a single file that was not added."""
        return cls(f"{path} was {status}, not added")


class RedundancyComputationError(PruningError):
    """Raised when open proposals cannot be enumerated."""

    @classmethod
    def listing_failed(cls, repo_slug: str, base_branch: str) -> RedundancyComputationError:
        """Return an error for a failed listing of open proposals."""
        return cls(f"could not list open proposals for {repo_slug} into {base_branch}")

    @classmethod
    def accepted_unknown(cls, repo_slug: str, sha: str) -> RedundancyComputationError:
        """Return an error when the merged feature cannot be determined."""
        return cls(f"could not determine the feature merged by {repo_slug}@{sha[:7]}")


class PublishError(PruningError):
    """Raised when creating objects or moving a ref fails.

    Attributes
    ----------
    stage
        Step that failed, e.g. ``create_tree`` or ``update_ref``.
    conflict
        True when the branch moved concurrently and the fast-forward was
        refused.
    orphaned_commit
        Sha of a pruning commit that was created but never published.

    """

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        conflict: bool = False,
        orphaned_commit: str | None = None,
    ) -> None:
        """Initialise with the failing stage and any unpublished commit."""
        self.stage = stage
        self.conflict = conflict
        self.orphaned_commit = orphaned_commit
        super().__init__(message)

    @classmethod
    def failed(
        cls, stage: str, exc: Exception, *, orphaned_commit: str | None = None
    ) -> PublishError:
        """Return an error for a remote call that failed during publishing."""
        return cls(
            f"pruning aborted at {stage}: {exc}",
            stage=stage,
            orphaned_commit=orphaned_commit,
        )

    @classmethod
    def ref_conflict(cls, branch: str, exc: Exception, orphaned_commit: str) -> PublishError:
        """Return an error for a branch that moved before the ref update."""
        return cls(
            f"pruning commit {orphaned_commit[:7]} not published; {branch} "
            f"changed concurrently: {exc}",
            stage="update_ref",
            conflict=True,
            orphaned_commit=orphaned_commit,
        )


__all__ = [
    "ActionConflict",
    "ClassificationAmbiguous",
    "PruningError",
    "PublishError",
    "RedundancyComputationError",
]
