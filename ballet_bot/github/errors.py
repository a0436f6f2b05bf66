"""Errors raised by the GitHub REST client."""

from __future__ import annotations


class GitHubAPIError(RuntimeError):
    """Raised when GitHub returns an error response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, method: str, path: str) -> GitHubAPIError:
        """Return an error for a non-2xx HTTP response."""
        return cls(
            f"GitHub REST {method} {path} failed with HTTP {status_code}",
            status_code=status_code,
        )

    @classmethod
    def transport(cls, method: str, path: str, exc: Exception) -> GitHubAPIError:
        """Return an error for a request that never produced a response."""
        return cls(f"GitHub REST {method} {path} failed: {exc}")


class RefConflictError(GitHubAPIError):
    """Raised when a branch ref cannot be moved by fast-forward.

    Attributes
    ----------
    branch
        Branch whose ref update was refused.
    expected_sha
        The sha the caller believed the branch pointed at.
    actual_sha
        The sha observed on the remote, when known.

    """

    def __init__(
        self,
        message: str,
        *,
        branch: str,
        expected_sha: str,
        actual_sha: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Initialise with the branch and the shas involved in the conflict."""
        self.branch = branch
        self.expected_sha = expected_sha
        self.actual_sha = actual_sha
        super().__init__(message, status_code=status_code)

    @classmethod
    def moved(cls, branch: str, expected_sha: str, actual_sha: str) -> RefConflictError:
        """Return an error for a ref that moved since it was read."""
        return cls(
            f"refs/heads/{branch} moved from {expected_sha[:7]} to {actual_sha[:7]}",
            branch=branch,
            expected_sha=expected_sha,
            actual_sha=actual_sha,
        )

    @classmethod
    def rejected(cls, branch: str, expected_sha: str, status_code: int) -> RefConflictError:
        """Return an error for a ref update the host refused as non-fast-forward."""
        return cls(
            f"GitHub rejected non-fast-forward update of refs/heads/{branch}",
            branch=branch,
            expected_sha=expected_sha,
            status_code=status_code,
        )


class ActionConflict(GitHubAPIError):
    """Raised when a pull request is no longer in a state that allows the action.

    The policy engine treats this as a no-op: the pull request was already
    merged or closed by someone else.
    """

    @classmethod
    def for_pull_request(
        cls, number: int, action: str, status_code: int
    ) -> ActionConflict:
        """Return an error for a merge or close that GitHub refused."""
        return cls(
            f"pull request #{number} cannot be {action} (HTTP {status_code})",
            status_code=status_code,
        )


class GitHubResponseShapeError(RuntimeError):
    """Raised when a GitHub response does not match the expected schema."""

    @classmethod
    def invalid(cls, resource: str, detail: object) -> GitHubResponseShapeError:
        """Return an error for a response body that failed conversion."""
        return cls(f"GitHub response for {resource} has unexpected shape: {detail}")


class TruncatedTreeError(GitHubResponseShapeError):
    """Raised when GitHub lists only part of a tree.

    Rebuilding a tree from a partial listing would drop every entry past the
    cut, so truncated listings are never used.
    """

    def __init__(self, message: str, *, sha: str) -> None:
        """Record the tree whose listing was cut short."""
        super().__init__(message)
        self.sha = sha

    @classmethod
    def for_tree(cls, sha: str) -> TruncatedTreeError:
        """Return an error for the truncated listing of tree ``sha``."""
        return cls(f"GitHub truncated the listing of tree {sha}", sha=sha)


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing_token(cls) -> GitHubConfigError:
        """Return an error when no GitHub token is configured."""
        return cls("BALLET_BOT_GITHUB_TOKEN is required for GitHub API")

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")
