"""Unit tests for the GitHub REST client."""

from __future__ import annotations

import base64
import json
import secrets
import typing as typ

import httpx
import pytest

from ballet_bot.github import (
    ActionConflict,
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    GitHubRestClient,
    GitHubRestConfig,
    GitTreeEntry,
    RefConflictError,
    RepoRef,
)
from tests.helpers import run_async

_TOKEN = secrets.token_hex(8)
_API = "https://example.test"
_REPO = RepoRef(owner="ballet", name="demo")
_HEAD = "1" * 40
_NEW = "2" * 40
_OTHER = "3" * 40

Route = tuple[int, typ.Any] | tuple[int, typ.Any, dict[str, str]]


def _make_client(
    routes: dict[tuple[str, str], list[Route]],
) -> tuple[GitHubRestClient, list[httpx.Request]]:
    """Return a client answering ``(method, path)`` from queued responses."""
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        queue = routes[(request.method, request.url.path)]
        status, payload, *rest = queue.pop(0)
        headers = rest[0] if rest else {}
        return httpx.Response(status_code=status, json=payload, headers=headers)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    client = GitHubRestClient(
        GitHubRestConfig(token=_TOKEN, api_url=_API), http_client=http_client
    )
    return client, requests


def _ref(sha: str) -> dict[str, typ.Any]:
    return {"ref": "refs/heads/master", "object": {"sha": sha, "type": "commit"}}


def _pull(number: int, *, base: str = "master") -> dict[str, typ.Any]:
    return {
        "number": number,
        "state": "open",
        "title": f"PR {number}",
        "head": {"ref": f"feature-{number}", "sha": f"{number:040x}"},
        "base": {"ref": base, "sha": _HEAD},
    }


class TestConfig:
    """Tests for GitHubRestConfig."""

    def test_from_env_requires_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A missing token is a configuration error."""
        monkeypatch.delenv("BALLET_BOT_GITHUB_TOKEN", raising=False)

        with pytest.raises(GitHubConfigError, match="BALLET_BOT_GITHUB_TOKEN"):
            GitHubRestConfig.from_env()

    def test_from_env_reads_api_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Enterprise API URLs are accepted without a trailing slash."""
        monkeypatch.setenv("BALLET_BOT_GITHUB_TOKEN", _TOKEN)
        monkeypatch.setenv("BALLET_BOT_GITHUB_API_URL", "https://ghe.test/api/v3/")

        config = GitHubRestConfig.from_env()

        assert config.token == _TOKEN
        assert config.api_url == "https://ghe.test/api/v3"

    def test_blank_token_is_rejected(self) -> None:
        """The client refuses to start with a whitespace token."""
        with pytest.raises(GitHubConfigError):
            GitHubRestClient(GitHubRestConfig(token="  "))


class TestGitData:
    """Tests for refs, commits, trees and blobs."""

    def test_resolve_ref_returns_target_sha(self) -> None:
        """The ref object's sha is returned."""
        client, requests = _make_client(
            {("GET", "/repos/ballet/demo/git/ref/heads/master"): [(200, _ref(_HEAD))]}
        )

        assert run_async(lambda: client.resolve_ref(_REPO, "master")) == _HEAD
        assert requests[0].method == "GET"

    def test_get_commit_decodes_parents(self) -> None:
        """Merge commits expose both parents."""
        client, _ = _make_client(
            {
                ("GET", f"/repos/ballet/demo/git/commits/{_HEAD}"): [
                    (
                        200,
                        {
                            "sha": _HEAD,
                            "tree": {"sha": "t" * 40},
                            "parents": [{"sha": _NEW}, {"sha": _OTHER}],
                            "message": "Merge pull request #42",
                            "author": {"name": "someone"},
                        },
                    )
                ]
            }
        )

        commit = run_async(lambda: client.get_commit(_REPO, _HEAD))

        assert commit.is_merge
        assert commit.parent_shas == (_NEW, _OTHER)

    def test_create_tree_sends_complete_entries_without_base(self) -> None:
        """Trees are created from full entry lists, never on a base tree."""
        client, requests = _make_client(
            {("POST", "/repos/ballet/demo/git/trees"): [(201, {"sha": _NEW, "tree": []})]}
        )
        entry = GitTreeEntry(path="foo.py", mode="100644", type="blob", sha=_OTHER)

        sha = run_async(lambda: client.create_tree(_REPO, [entry]))

        body = json.loads(requests[0].content)
        assert sha == _NEW
        assert body == {
            "tree": [{"path": "foo.py", "mode": "100644", "type": "blob", "sha": _OTHER}]
        }

    def test_create_blob_encodes_base64(self) -> None:
        """Blob content is sent base64-encoded."""
        client, requests = _make_client(
            {("POST", "/repos/ballet/demo/git/blobs"): [(201, {"sha": _NEW})]}
        )

        assert run_async(lambda: client.create_blob(_REPO, b"x = 1\n")) == _NEW
        body = json.loads(requests[0].content)
        assert base64.b64decode(body["content"]) == b"x = 1\n"

    def test_create_commit_posts_parents_and_author(self) -> None:
        """The commit payload carries the tree, parents and author."""
        client, requests = _make_client(
            {
                ("POST", "/repos/ballet/demo/git/commits"): [
                    (201, {"sha": _NEW, "tree": {"sha": _OTHER}, "parents": [{"sha": _HEAD}]})
                ]
            }
        )

        commit = run_async(
            lambda: client.create_commit(
                _REPO,
                message="Prune",
                tree=_OTHER,
                parents=[_HEAD],
                author={"name": "ballet-bot", "email": "bot@example.test"},
            )
        )

        assert commit.sha == _NEW
        assert json.loads(requests[0].content) == {
            "message": "Prune",
            "tree": _OTHER,
            "parents": [_HEAD],
            "author": {"name": "ballet-bot", "email": "bot@example.test"},
        }

    def test_update_ref_sends_fast_forward_only_patch(self) -> None:
        """The ref is patched with ``force: false`` after the sha check."""
        client, requests = _make_client(
            {
                ("GET", "/repos/ballet/demo/git/ref/heads/master"): [(200, _ref(_HEAD))],
                ("PATCH", "/repos/ballet/demo/git/refs/heads/master"): [(200, _ref(_NEW))],
            }
        )

        run_async(lambda: client.update_ref(_REPO, "master", _NEW, expected_sha=_HEAD))

        assert json.loads(requests[1].content) == {"sha": _NEW, "force": False}

    def test_update_ref_refuses_when_branch_moved(self) -> None:
        """A branch that moved since it was read is never patched."""
        client, requests = _make_client(
            {("GET", "/repos/ballet/demo/git/ref/heads/master"): [(200, _ref(_OTHER))]}
        )

        with pytest.raises(RefConflictError) as excinfo:
            run_async(
                lambda: client.update_ref(_REPO, "master", _NEW, expected_sha=_HEAD)
            )

        assert excinfo.value.actual_sha == _OTHER
        assert [request.method for request in requests] == ["GET"]

    def test_update_ref_maps_422_to_conflict(self) -> None:
        """GitHub's non-fast-forward refusal is a ref conflict."""
        client, _ = _make_client(
            {
                ("GET", "/repos/ballet/demo/git/ref/heads/master"): [(200, _ref(_HEAD))],
                ("PATCH", "/repos/ballet/demo/git/refs/heads/master"): [
                    (422, {"message": "Update is not a fast forward"})
                ],
            }
        )

        with pytest.raises(RefConflictError) as excinfo:
            run_async(
                lambda: client.update_ref(_REPO, "master", _NEW, expected_sha=_HEAD)
            )

        assert excinfo.value.status_code == 422

    def test_shape_errors_are_reported(self) -> None:
        """Responses missing required fields raise GitHubResponseShapeError."""
        client, _ = _make_client(
            {("GET", f"/repos/ballet/demo/git/trees/{_HEAD}"): [(200, {"tree": []})]}
        )

        with pytest.raises(GitHubResponseShapeError, match="tree"):
            run_async(lambda: client.get_tree(_REPO, _HEAD))

    def test_http_errors_carry_status(self) -> None:
        """Non-2xx responses raise GitHubAPIError with the status code."""
        client, _ = _make_client(
            {("GET", f"/repos/ballet/demo/git/commits/{_HEAD}"): [(502, {})]}
        )

        with pytest.raises(GitHubAPIError) as excinfo:
            run_async(lambda: client.get_commit(_REPO, _HEAD))

        assert excinfo.value.status_code == 502


class TestPullRequests:
    """Tests for the pulls API."""

    def test_list_open_pull_requests_follows_next_links(self) -> None:
        """Every page is fetched until no ``next`` link remains."""
        next_url = f"{_API}/repos/ballet/demo/pulls?state=open&per_page=100&page=2"
        client, requests = _make_client(
            {
                ("GET", "/repos/ballet/demo/pulls"): [
                    (200, [_pull(44)], {"Link": f'<{next_url}>; rel="next"'}),
                    (200, [_pull(45)]),
                ]
            }
        )

        pulls = run_async(lambda: client.list_open_pull_requests(_REPO, base="master"))

        assert [pull.number for pull in pulls] == [44, 45]
        assert requests[0].url.params["base"] == "master"
        assert requests[0].url.params["per_page"] == "100"
        assert requests[1].url.params["page"] == "2"

    def test_list_pull_request_files(self) -> None:
        """Changed files are decoded with their status."""
        client, _ = _make_client(
            {
                ("GET", "/repos/ballet/demo/pulls/42/files"): [
                    (
                        200,
                        [
                            {"filename": "features/foo.py", "status": "added"},
                            {"filename": "features/__init__.py", "status": "modified"},
                        ],
                    )
                ]
            }
        )

        files = run_async(lambda: client.list_pull_request_files(_REPO, 42))

        assert [(f.filename, f.status) for f in files] == [
            ("features/foo.py", "added"),
            ("features/__init__.py", "modified"),
        ]

    def test_page_that_is_not_a_list_is_a_shape_error(self) -> None:
        """Listing endpoints must return arrays."""
        client, _ = _make_client(
            {("GET", "/repos/ballet/demo/pulls/42/files"): [(200, {"message": "?"})]}
        )

        with pytest.raises(GitHubResponseShapeError):
            run_async(lambda: client.list_pull_request_files(_REPO, 42))

    @pytest.mark.parametrize("status", [405, 409, 422])
    @pytest.mark.parametrize(
        "current",
        [{"merged": True, "state": "closed"}, {"merged": False, "state": "closed"}],
        ids=["merged", "closed"],
    )
    def test_merge_of_finished_pull_request_is_a_conflict(
        self, status: int, current: dict[str, typ.Any]
    ) -> None:
        """A refused merge of an already merged or closed pull request conflicts."""
        client, requests = _make_client(
            {
                ("PUT", "/repos/ballet/demo/pulls/42/merge"): [
                    (status, {"message": "Pull Request is not mergeable"})
                ],
                ("GET", "/repos/ballet/demo/pulls/42"): [(200, {**_pull(42), **current})],
            }
        )

        with pytest.raises(ActionConflict, match="#42"):
            run_async(lambda: client.merge_pull_request(_REPO, 42))
        assert [request.method for request in requests] == ["PUT", "GET"]

    @pytest.mark.parametrize("status", [405, 409])
    def test_unmergeable_open_pull_request_is_an_error(self, status: int) -> None:
        """An open pull request GitHub will not merge is a failure, not a no-op."""
        client, _ = _make_client(
            {
                ("PUT", "/repos/ballet/demo/pulls/42/merge"): [
                    (status, {"message": "Pull Request is not mergeable"})
                ],
                ("GET", "/repos/ballet/demo/pulls/42"): [(200, _pull(42))],
            }
        )

        with pytest.raises(GitHubAPIError) as excinfo:
            run_async(lambda: client.merge_pull_request(_REPO, 42))

        assert not isinstance(excinfo.value, ActionConflict)
        assert excinfo.value.status_code == status

    def test_merge_returns_result(self) -> None:
        """A successful merge reports the merge sha."""
        client, _ = _make_client(
            {
                ("PUT", "/repos/ballet/demo/pulls/42/merge"): [
                    (200, {"merged": True, "sha": _NEW, "message": "merged"})
                ]
            }
        )

        result = run_async(lambda: client.merge_pull_request(_REPO, 42))

        assert result.merged
        assert result.sha == _NEW

    def test_close_sends_state(self) -> None:
        """Closing patches the pull request state."""
        closed = {**_pull(42), "state": "closed"}
        client, requests = _make_client(
            {("PATCH", "/repos/ballet/demo/pulls/42"): [(200, closed)]}
        )

        pull = run_async(lambda: client.update_pull_request_state(_REPO, 42, "closed"))

        assert pull.state == "closed"
        assert json.loads(requests[0].content) == {"state": "closed"}

    def test_create_pull_request(self) -> None:
        """Pull requests are opened from head into base."""
        client, requests = _make_client(
            {("POST", "/repos/ballet/demo/pulls"): [(201, _pull(50))]}
        )

        pull = run_async(
            lambda: client.create_pull_request(
                _REPO, title="Prune", body="body", head="ballet-bot/prune-1", base="master"
            )
        )

        assert pull.number == 50
        body = json.loads(requests[0].content)
        assert (body["head"], body["base"]) == ("ballet-bot/prune-1", "master")


class TestContents:
    """Tests for the contents API."""

    def test_missing_file_returns_none(self) -> None:
        """A 404 means the file does not exist."""
        client, _ = _make_client(
            {("GET", "/repos/ballet/demo/contents/ballet.yml"): [(404, {})]}
        )

        assert run_async(lambda: client.get_file_contents(_REPO, "ballet.yml")) is None

    def test_file_is_decoded(self) -> None:
        """Base64 content is decoded to text."""
        encoded = base64.b64encode(b"github:\n  pruning_action: no_action\n").decode()
        client, requests = _make_client(
            {
                ("GET", "/repos/ballet/demo/contents/ballet.yml"): [
                    (200, {"content": encoded, "encoding": "base64"})
                ]
            }
        )

        text = run_async(
            lambda: client.get_file_contents(_REPO, "ballet.yml", ref="master")
        )

        assert text == "github:\n  pruning_action: no_action\n"
        assert requests[0].url.params["ref"] == "master"
