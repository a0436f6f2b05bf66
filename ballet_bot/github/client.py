"""GitHub REST client used as the bot's remote Git object store.

All repository mutations performed by the bot go through this module: git
data objects (blobs, trees, commits, refs) are created directly against the
remote object graph, and pull requests are merged or closed through the pulls
API. Nothing here touches a local checkout.
"""

from __future__ import annotations

import base64
import collections.abc as cabc
import dataclasses
import os
import typing as typ
from urllib.parse import quote

import httpx
import msgspec

from .errors import (
    ActionConflict,
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    RefConflictError,
)
from .models import (
    CreatedObject,
    FileContents,
    GitCommit,
    GitRef,
    GitTree,
    GitTreeEntry,
    MergeResult,
    PullRequest,
    PullRequestFile,
    RepoRef,
)

if typ.TYPE_CHECKING:
    from types import TracebackType

_T = typ.TypeVar("_T")

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_NOT_FOUND = 404
_HTTP_NOT_ALLOWED = 405
_HTTP_CONFLICT = 409
_HTTP_UNPROCESSABLE = 422
_ACTION_CONFLICT_STATUSES = frozenset({_HTTP_NOT_ALLOWED, _HTTP_CONFLICT, _HTTP_UNPROCESSABLE})
_PAGE_SIZE = 100


class RemoteObjectStore(typ.Protocol):
    """Capabilities the bot needs from a remote Git hosting API."""

    async def resolve_ref(self, repo: RepoRef, branch: str) -> str:
        """Return the commit sha ``refs/heads/<branch>`` points at."""
        ...

    async def get_commit(self, repo: RepoRef, sha: str) -> GitCommit:
        """Return the commit object ``sha``."""
        ...

    async def get_tree(self, repo: RepoRef, sha: str) -> GitTree:
        """Return the (non-recursive) tree object ``sha``."""
        ...

    async def create_blob(self, repo: RepoRef, content: bytes) -> str:
        """Store ``content`` as a blob and return its sha."""
        ...

    async def create_tree(
        self, repo: RepoRef, entries: cabc.Sequence[GitTreeEntry]
    ) -> str:
        """Create a tree from complete ``entries`` and return its sha."""
        ...

    async def create_commit(
        self,
        repo: RepoRef,
        *,
        message: str,
        tree: str,
        parents: cabc.Sequence[str],
        author: cabc.Mapping[str, str],
    ) -> GitCommit:
        """Create a commit object."""
        ...

    async def update_ref(
        self, repo: RepoRef, branch: str, sha: str, *, expected_sha: str
    ) -> None:
        """Fast-forward ``branch`` to ``sha`` if it still points at ``expected_sha``."""
        ...

    async def create_ref(self, repo: RepoRef, branch: str, sha: str) -> GitRef:
        """Create ``refs/heads/<branch>`` at ``sha``."""
        ...

    async def list_pull_request_files(
        self, repo: RepoRef, number: int
    ) -> list[PullRequestFile]:
        """Return every file changed by pull request ``number``."""
        ...

    async def list_open_pull_requests(
        self, repo: RepoRef, *, base: str | None = None
    ) -> list[PullRequest]:
        """Return open pull requests, optionally limited to one base branch."""
        ...

    async def get_pull_request(self, repo: RepoRef, number: int) -> PullRequest:
        """Return pull request ``number``."""
        ...

    async def merge_pull_request(self, repo: RepoRef, number: int) -> MergeResult:
        """Merge pull request ``number``."""
        ...

    async def update_pull_request_state(
        self, repo: RepoRef, number: int, state: typ.Literal["open", "closed"]
    ) -> PullRequest:
        """Set the state of pull request ``number``."""
        ...

    async def create_pull_request(  # noqa: PLR0913
        self,
        repo: RepoRef,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> PullRequest:
        """Open a pull request from ``head`` into ``base``."""
        ...

    async def get_file_contents(
        self, repo: RepoRef, path: str, *, ref: str | None = None
    ) -> str | None:
        """Return the text of ``path`` or ``None`` when it does not exist."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubRestConfig:
    """Configuration for the GitHub REST API client."""

    token: str
    api_url: str = "https://api.github.com"
    timeout_s: float = 20.0
    user_agent: str = "ballet-bot/0.1"

    @classmethod
    def from_env(cls) -> GitHubRestConfig:
        """Build configuration from ``BALLET_BOT_GITHUB_*`` variables."""
        token = os.environ.get("BALLET_BOT_GITHUB_TOKEN", "").strip()
        if not token:
            raise GitHubConfigError.missing_token()
        api_url = os.environ.get("BALLET_BOT_GITHUB_API_URL", "").strip()
        if api_url:
            return cls(token=token, api_url=api_url.rstrip("/"))
        return cls(token=token)


def _convert(payload: object, type_: type[_T], *, resource: str) -> _T:
    try:
        return msgspec.convert(payload, type=type_)
    except msgspec.ValidationError as exc:
        raise GitHubResponseShapeError.invalid(resource, exc) from exc


def _quote_ref(branch: str) -> str:
    return quote(branch, safe="/")


class GitHubRestClient:
    """GitHub REST v3 implementation of :class:`RemoteObjectStore`."""

    def __init__(
        self,
        config: GitHubRestConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.token}",
                "User-Agent": config.user_agent,
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GitHubRestClient:
        """Return the client for use in ``async with`` blocks."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Release owned HTTP resources."""
        await self.aclose()

    # -- git data -------------------------------------------------------

    async def resolve_ref(self, repo: RepoRef, branch: str) -> str:
        """Return the commit sha ``refs/heads/<branch>`` points at."""
        path = f"{self._repo_path(repo)}/git/ref/heads/{_quote_ref(branch)}"
        ref = _convert(await self._json("GET", path), GitRef, resource="ref")
        return ref.target.sha

    async def get_commit(self, repo: RepoRef, sha: str) -> GitCommit:
        """Return the commit object ``sha``."""
        path = f"{self._repo_path(repo)}/git/commits/{sha}"
        return _convert(await self._json("GET", path), GitCommit, resource="commit")

    async def get_tree(self, repo: RepoRef, sha: str) -> GitTree:
        """Return the (non-recursive) tree object ``sha``."""
        path = f"{self._repo_path(repo)}/git/trees/{sha}"
        return _convert(await self._json("GET", path), GitTree, resource="tree")

    async def create_blob(self, repo: RepoRef, content: bytes) -> str:
        """Store ``content`` as a blob and return its sha."""
        body = {"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"}
        path = f"{self._repo_path(repo)}/git/blobs"
        blob = _convert(
            await self._json("POST", path, json=body), CreatedObject, resource="blob"
        )
        return blob.sha

    async def create_tree(
        self, repo: RepoRef, entries: cabc.Sequence[GitTreeEntry]
    ) -> str:
        """Create a tree from complete ``entries`` and return its sha.

        No ``base_tree`` is sent: the new tree contains exactly ``entries``.
        """
        body = {"tree": [entry.to_payload() for entry in entries]}
        path = f"{self._repo_path(repo)}/git/trees"
        tree = _convert(await self._json("POST", path, json=body), GitTree, resource="tree")
        return tree.sha

    async def create_commit(
        self,
        repo: RepoRef,
        *,
        message: str,
        tree: str,
        parents: cabc.Sequence[str],
        author: cabc.Mapping[str, str],
    ) -> GitCommit:
        """Create a commit object."""
        body = {
            "message": message,
            "tree": tree,
            "parents": list(parents),
            "author": dict(author),
        }
        path = f"{self._repo_path(repo)}/git/commits"
        return _convert(
            await self._json("POST", path, json=body), GitCommit, resource="commit"
        )

    async def update_ref(
        self, repo: RepoRef, branch: str, sha: str, *, expected_sha: str
    ) -> None:
        """Fast-forward ``branch`` to ``sha`` if it still points at ``expected_sha``.

        The current value is re-read first so that a concurrent move is
        reported with the observed sha; the update itself is sent with
        ``force: false`` so GitHub refuses any non-fast-forward move that
        slips in between the read and the write.

        Raises
        ------
        RefConflictError
            If the ref moved or GitHub refuses the update.

        """
        current = await self.resolve_ref(repo, branch)
        if current != expected_sha:
            raise RefConflictError.moved(branch, expected_sha, current)

        path = f"{self._repo_path(repo)}/git/refs/heads/{_quote_ref(branch)}"
        response = await self._send("PATCH", path, json={"sha": sha, "force": False})
        if response.status_code == _HTTP_UNPROCESSABLE:
            raise RefConflictError.rejected(branch, expected_sha, response.status_code)
        self._raise_for_status(response, "PATCH", path)

    async def create_ref(self, repo: RepoRef, branch: str, sha: str) -> GitRef:
        """Create ``refs/heads/<branch>`` at ``sha``."""
        body = {"ref": f"refs/heads/{branch}", "sha": sha}
        path = f"{self._repo_path(repo)}/git/refs"
        return _convert(await self._json("POST", path, json=body), GitRef, resource="ref")

    # -- pull requests --------------------------------------------------

    async def list_pull_request_files(
        self, repo: RepoRef, number: int
    ) -> list[PullRequestFile]:
        """Return every file changed by pull request ``number``."""
        path = f"{self._repo_path(repo)}/pulls/{number}/files"
        return [
            _convert(item, PullRequestFile, resource="pull request file")
            async for item in self._paginate(path, params={})
        ]

    async def list_open_pull_requests(
        self, repo: RepoRef, *, base: str | None = None
    ) -> list[PullRequest]:
        """Return open pull requests, optionally limited to one base branch."""
        params: dict[str, str] = {"state": "open"}
        if base is not None:
            params["base"] = base
        path = f"{self._repo_path(repo)}/pulls"
        return [
            _convert(item, PullRequest, resource="pull request")
            async for item in self._paginate(path, params=params)
        ]

    async def get_pull_request(self, repo: RepoRef, number: int) -> PullRequest:
        """Return pull request ``number``."""
        path = f"{self._repo_path(repo)}/pulls/{number}"
        return _convert(
            await self._json("GET", path), PullRequest, resource="pull request"
        )

    async def merge_pull_request(self, repo: RepoRef, number: int) -> MergeResult:
        """Merge pull request ``number``.

        GitHub answers 405, 409 or 422 both when the pull request was already
        merged or closed and when it is open but cannot be merged, such as
        after a conflict or a head update. The pull request is re-read to tell
        the two apart.

        Raises
        ------
        ActionConflict
            If the pull request has already been merged or closed.
        GitHubAPIError
            If GitHub refuses to merge an open pull request, or the request
            fails.

        """
        path = f"{self._repo_path(repo)}/pulls/{number}/merge"
        response = await self._send("PUT", path, json={})
        if response.status_code in _ACTION_CONFLICT_STATUSES:
            current = await self.get_pull_request(repo, number)
            if current.merged or current.state != "open":
                raise ActionConflict.for_pull_request(
                    number, "merged", response.status_code
                )
        self._raise_for_status(response, "PUT", path)
        return _convert(response.json(), MergeResult, resource="merge")

    async def update_pull_request_state(
        self, repo: RepoRef, number: int, state: typ.Literal["open", "closed"]
    ) -> PullRequest:
        """Set the state of pull request ``number``.

        Raises
        ------
        ActionConflict
            If GitHub refuses the state change.

        """
        path = f"{self._repo_path(repo)}/pulls/{number}"
        response = await self._send("PATCH", path, json={"state": state})
        if response.status_code == _HTTP_UNPROCESSABLE:
            raise ActionConflict.for_pull_request(number, state, response.status_code)
        self._raise_for_status(response, "PATCH", path)
        return _convert(response.json(), PullRequest, resource="pull request")

    async def create_pull_request(  # noqa: PLR0913
        self,
        repo: RepoRef,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> PullRequest:
        """Open a pull request from ``head`` into ``base``."""
        payload = {
            "title": title,
            "body": body,
            "head": head,
            "base": base,
            "maintainer_can_modify": True,
        }
        path = f"{self._repo_path(repo)}/pulls"
        return _convert(
            await self._json("POST", path, json=payload),
            PullRequest,
            resource="pull request",
        )

    # -- contents -------------------------------------------------------

    async def get_file_contents(
        self, repo: RepoRef, path: str, *, ref: str | None = None
    ) -> str | None:
        """Return the text of ``path`` or ``None`` when it does not exist."""
        url = f"{self._repo_path(repo)}/contents/{quote(path)}"
        params = {"ref": ref} if ref is not None else None
        response = await self._send("GET", url, params=params)
        if response.status_code == _HTTP_NOT_FOUND:
            return None
        self._raise_for_status(response, "GET", url)
        return _convert(response.json(), FileContents, resource="contents").decoded()

    # -- transport ------------------------------------------------------

    def _repo_path(self, repo: RepoRef) -> str:
        return f"{self._config.api_url}/repos/{repo.owner}/{repo.name}"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        json: object | None = None,
        params: cabc.Mapping[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, url, json=json, params=params)
        except httpx.HTTPError as exc:
            raise GitHubAPIError.transport(method, url, exc) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, url: str) -> None:
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(response.status_code, method, url)

    async def _json(
        self,
        method: str,
        url: str,
        *,
        json: object | None = None,
        params: cabc.Mapping[str, str] | None = None,
    ) -> object:
        response = await self._send(method, url, json=json, params=params)
        self._raise_for_status(response, method, url)
        return response.json()

    async def _paginate(
        self, url: str, *, params: dict[str, str]
    ) -> typ.AsyncIterator[object]:
        """Yield items across pages by following ``Link: rel="next"``."""
        next_url: str | None = url
        next_params: dict[str, str] | None = {**params, "per_page": str(_PAGE_SIZE)}
        while next_url is not None:
            response = await self._send("GET", next_url, params=next_params)
            self._raise_for_status(response, "GET", next_url)
            page = response.json()
            if not isinstance(page, list):
                raise GitHubResponseShapeError.invalid(url, "expected a JSON array")
            for item in page:
                yield item
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            next_params = None
