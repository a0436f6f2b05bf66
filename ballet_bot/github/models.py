"""Typed GitHub REST payloads used by the bot.

Responses are converted with :func:`msgspec.convert`; unknown fields are
ignored so that GitHub adding keys never breaks decoding.
"""

from __future__ import annotations

import base64
import dataclasses
import typing as typ

import msgspec

TreeEntryType = typ.Literal["blob", "tree", "commit"]

# Git file modes accepted by the trees API.
MODE_FILE = "100644"
MODE_EXECUTABLE = "100755"
MODE_SYMLINK = "120000"
MODE_TREE = "040000"
MODE_SUBMODULE = "160000"


@dataclasses.dataclass(frozen=True, slots=True)
class RepoRef:
    """Owner and name of a GitHub repository."""

    owner: str
    name: str

    @property
    def slug(self) -> str:
        """Return the ``owner/name`` identifier."""
        return f"{self.owner}/{self.name}"

    @classmethod
    def from_full_name(cls, full_name: str) -> RepoRef:
        """Parse ``owner/name`` as reported in webhook payloads."""
        owner, sep, name = full_name.partition("/")
        if not sep or not owner or not name or "/" in name:
            msg = f"Invalid repository full name: expected 'owner/name', got {full_name!r}"
            raise ValueError(msg)
        return cls(owner=owner, name=name)


class ShaPointer(msgspec.Struct, kw_only=True):
    """Object pointer embedded in commit payloads."""

    sha: str


class GitCommit(msgspec.Struct, kw_only=True):
    """Commit object returned by ``/git/commits``."""

    sha: str
    tree: ShaPointer
    parents: list[ShaPointer] = msgspec.field(default_factory=list)
    message: str = ""

    @property
    def parent_shas(self) -> tuple[str, ...]:
        """Return parent commit shas in order."""
        return tuple(parent.sha for parent in self.parents)

    @property
    def is_merge(self) -> bool:
        """Return True for commits with more than one parent."""
        return len(self.parents) > 1


class GitTreeEntry(msgspec.Struct, kw_only=True):
    """Single entry of a tree object.

    Attributes
    ----------
    path : str
        Entry name relative to its tree (non-recursive listings only).
    mode : str
        Git file mode, e.g. ``100644`` or ``040000``.
    type : {"blob", "tree", "commit"}
        Object type; ``commit`` denotes a submodule gitlink.
    sha : str
        Object id the entry points at.

    """

    path: str
    mode: str
    type: TreeEntryType
    sha: str

    def to_payload(self) -> dict[str, str]:
        """Return the entry in the shape accepted by ``POST /git/trees``."""
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


class GitTree(msgspec.Struct, kw_only=True):
    """Tree object returned by ``/git/trees``."""

    sha: str
    tree: list[GitTreeEntry] = msgspec.field(default_factory=list)
    truncated: bool = False


class GitRefTarget(msgspec.Struct, kw_only=True):
    """Object a ref points at."""

    sha: str
    type: str = "commit"


class GitRef(msgspec.Struct, kw_only=True):
    """Reference returned by ``/git/ref`` and ``/git/refs``."""

    ref: str
    target: GitRefTarget = msgspec.field(name="object")


class CreatedObject(msgspec.Struct, kw_only=True):
    """Minimal response for created blobs."""

    sha: str


class PullRequestBranch(msgspec.Struct, kw_only=True):
    """Head or base side of a pull request."""

    ref: str
    sha: str


class PullRequest(msgspec.Struct, kw_only=True):
    """Pull request as returned by the pulls API."""

    number: int
    state: str
    head: PullRequestBranch
    base: PullRequestBranch
    title: str = ""
    merged: bool = False
    html_url: str | None = None


class PullRequestFile(msgspec.Struct, kw_only=True):
    """Changed file entry from ``/pulls/{number}/files``."""

    filename: str
    status: str
    previous_filename: str | None = None


class MergeResult(msgspec.Struct, kw_only=True):
    """Response from ``PUT /pulls/{number}/merge``."""

    merged: bool
    sha: str | None = None
    message: str = ""


class FileContents(msgspec.Struct, kw_only=True):
    """Response from ``/contents/{path}`` for a single file."""

    content: str
    encoding: str = "base64"

    def decoded(self) -> str:
        """Return the file body as UTF-8 text."""
        if self.encoding != "base64":
            return self.content
        return base64.b64decode(self.content).decode("utf-8")
