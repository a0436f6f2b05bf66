"""Build snapshots reported by the CI provider."""

from __future__ import annotations

import msgspec

PULL_REQUEST_EVENT = "pull_request"
PUSH_EVENT = "push"
PASSED_STATE = "passed"


class BuildCommit(msgspec.Struct, frozen=True, kw_only=True):
    """Commit a build ran against."""

    sha: str
    message: str = ""


class BuildBranch(msgspec.Struct, frozen=True, kw_only=True):
    """Branch a build ran on."""

    name: str


class BuildRecord(msgspec.Struct, frozen=True, kw_only=True):
    """Immutable snapshot of a CI build, fetched once per event.

    Attributes
    ----------
    id : int
        Provider build identifier.
    event_type : str
        What triggered the build: ``pull_request``, ``push``, ``api``, ...
    pull_request_number : int, optional
        Pull request under test for ``pull_request`` builds.
    commit : BuildCommit
        Commit the build ran against.
    branch : BuildBranch
        Branch the build ran on (the base branch for pull request builds).
    state : str
        Provider build state; only ``passed`` counts as passing.

    """

    id: int
    event_type: str
    commit: BuildCommit
    branch: BuildBranch
    state: str
    pull_request_number: int | None = None

    @property
    def passed(self) -> bool:
        """Return True when the build finished in the ``passed`` state."""
        return self.state == PASSED_STATE

    @property
    def is_pull_request(self) -> bool:
        """Return True for builds triggered by a pull request."""
        return self.event_type == PULL_REQUEST_EVENT
