"""GitHub REST client acting as the bot's remote Git object store."""

from __future__ import annotations

from .client import GitHubRestClient, GitHubRestConfig, RemoteObjectStore
from .errors import (
    ActionConflict,
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    RefConflictError,
    TruncatedTreeError,
)
from .models import (
    GitCommit,
    GitRef,
    GitTree,
    GitTreeEntry,
    MergeResult,
    PullRequest,
    PullRequestFile,
    RepoRef,
)

__all__ = [
    "ActionConflict",
    "GitCommit",
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubResponseShapeError",
    "GitHubRestClient",
    "GitHubRestConfig",
    "GitRef",
    "GitTree",
    "GitTreeEntry",
    "MergeResult",
    "PullRequest",
    "PullRequestFile",
    "RefConflictError",
    "RemoteObjectStore",
    "RepoRef",
    "TruncatedTreeError",
]
