"""Domain types for feature proposals and pruning commits."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import enum
import types
import typing as typ
from pathlib import PurePosixPath

if typ.TYPE_CHECKING:
    from ballet_bot.github.models import PullRequest, PullRequestFile

ADDED = "added"


@dataclasses.dataclass(frozen=True, slots=True)
class FileChange:
    """A path touched by a pull request and how it was touched.

    ``status`` uses GitHub's vocabulary (``added``, ``modified``,
    ``removed``, ``renamed``, ...).
    """

    path: str
    status: str

    @property
    def is_added(self) -> bool:
        """Return True for newly added files."""
        return self.status == ADDED


@dataclasses.dataclass(frozen=True, slots=True, order=True)
class Feature:
    """A feature, identified by the path of the module that defines it."""

    path: str

    @property
    def name(self) -> str:
        """Return the module name, e.g. ``foo`` for ``features/foo.py``."""
        return PurePosixPath(self.path).stem

    @property
    def directory(self) -> str:
        """Return the directory holding the feature module."""
        return PurePosixPath(self.path).parent.as_posix()


@dataclasses.dataclass(frozen=True, slots=True)
class PullRequestProposal:
    """A pull request reduced to what the classifier and resolver need."""

    number: int
    changed_files: tuple[FileChange, ...]
    head_sha: str
    base_branch: str

    @classmethod
    def from_github(
        cls, pull_request: PullRequest, files: cabc.Iterable[PullRequestFile]
    ) -> PullRequestProposal:
        """Build a proposal from a pulls API payload and its file listing."""
        return cls(
            number=pull_request.number,
            changed_files=tuple(FileChange(f.filename, f.status) for f in files),
            head_sha=pull_request.head.sha,
            base_branch=pull_request.base.ref,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class AcceptedFeature:
    """The feature a merge commit brought into the base branch."""

    feature: Feature
    merge_sha: str
    pull_request_number: int | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class RedundantProposal:
    """An open proposal together with the feature it proposes."""

    proposal: PullRequestProposal
    feature: Feature


@dataclasses.dataclass(frozen=True, slots=True)
class RedundancySet:
    """Open proposals superseded by an accepted feature.

    Entries are ordered by pull request number so that equal inputs always
    produce equal sets.
    """

    accepted: Feature
    entries: tuple[RedundantProposal, ...] = ()

    def __bool__(self) -> bool:
        """Return True when at least one proposal is redundant."""
        return bool(self.entries)

    def __len__(self) -> int:
        """Return the number of redundant proposals."""
        return len(self.entries)

    @property
    def numbers(self) -> tuple[int, ...]:
        """Return the pull request numbers of redundant proposals."""
        return tuple(entry.proposal.number for entry in self.entries)

    @property
    def features(self) -> tuple[Feature, ...]:
        """Return the distinct redundant features sorted by path."""
        return tuple(sorted({entry.feature for entry in self.entries}))


class TreeChangeKind(enum.StrEnum):
    """How a path differs between two tree snapshots."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclasses.dataclass(frozen=True, slots=True)
class TreeChange:
    """One path-level difference between two tree snapshots."""

    path: str
    kind: TreeChangeKind


@dataclasses.dataclass(frozen=True, slots=True)
class TreeSnapshot:
    """Flattened, content-addressed view of a commit's file system.

    ``entries`` maps every non-tree path to the object id it points at.
    """

    base_commit_sha: str
    entries: cabc.Mapping[str, str]

    def __post_init__(self) -> None:
        """Freeze the entry mapping."""
        object.__setattr__(
            self, "entries", types.MappingProxyType(dict(self.entries))
        )

    def diff(self, other: TreeSnapshot) -> tuple[TreeChange, ...]:
        """Return the changes that turn this snapshot into ``other``."""
        changes: list[TreeChange] = []
        for path in sorted(self.entries.keys() | other.entries.keys()):
            before = self.entries.get(path)
            after = other.entries.get(path)
            if before == after:
                continue
            if before is None:
                kind = TreeChangeKind.ADDED
            elif after is None:
                kind = TreeChangeKind.REMOVED
            else:
                kind = TreeChangeKind.MODIFIED
            changes.append(TreeChange(path, kind))
        return tuple(changes)


@dataclasses.dataclass(frozen=True, slots=True)
class PruningCommit:
    """A commit that removes redundant features from the base branch.

    Pruning never produces merge commits, so exactly one parent is allowed.
    """

    parents: tuple[str, ...]
    tree: str
    message: str
    author: cabc.Mapping[str, str]

    def __post_init__(self) -> None:
        """Reject anything other than a single-parent commit."""
        if len(self.parents) != 1:
            msg = f"pruning commits have exactly one parent, got {len(self.parents)}"
            raise ValueError(msg)


class PublishMode(enum.StrEnum):
    """Where a pruning commit is published."""

    BRANCH = "commit_to_master"
    PULL_REQUEST = "make_pull_request"


@dataclasses.dataclass(frozen=True, slots=True)
class PruningOutcome:
    """Result of a pruning run.

    ``commit_sha`` is ``None`` when nothing needed removing.
    """

    removed: tuple[str, ...]
    missing: tuple[str, ...] = ()
    commit_sha: str | None = None
    published_to: str | None = None
    pull_request_number: int | None = None

    @property
    def published(self) -> bool:
        """Return True when a pruning commit was created and published."""
        return self.commit_sha is not None and self.published_to is not None
