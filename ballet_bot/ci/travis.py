"""Travis CI implementation of the CI status provider."""

from __future__ import annotations

import dataclasses
import os
import typing as typ
from urllib.parse import urlsplit

import httpx
import msgspec

from .errors import CIProviderError
from .models import BuildRecord

if typ.TYPE_CHECKING:
    from types import TracebackType

_HTTP_ERROR_STATUS_THRESHOLD = 400


class CIStatusProvider(typ.Protocol):
    """Build lookups the policy engine depends on."""

    async def get_build(self, build_id: str) -> BuildRecord:
        """Return the build snapshot for ``build_id``."""
        ...

    async def does_build_pass_all_checks(self, build_id: str) -> bool:
        """Return True when build ``build_id`` passed."""
        ...


def build_id_from_details_url(url: str) -> str:
    """Extract the build id from a check run ``details_url``.

    Travis reports details URLs such as
    ``https://travis-ci.com/ballet/predict-house-prices/builds/145322841``;
    the build id is the final path segment.

    Raises
    ------
    ValueError
        If the URL does not end in a numeric segment.

    Examples
    --------
    >>> build_id_from_details_url(
    ...     "https://travis-ci.com/ballet/demo/builds/145322841?utm_source=github"
    ... )
    '145322841'

    """
    segments = [segment for segment in urlsplit(url).path.split("/") if segment]
    if not segments or not segments[-1].isdigit():
        msg = f"Cannot determine build id from details url {url!r}"
        raise ValueError(msg)
    return segments[-1]


@dataclasses.dataclass(frozen=True, slots=True)
class TravisConfig:
    """Configuration for the Travis API v3 client."""

    api_url: str = "https://api.travis-ci.com"
    token: str | None = None
    timeout_s: float = 20.0
    user_agent: str = "ballet-bot/0.1"

    @classmethod
    def from_env(cls) -> TravisConfig:
        """Build configuration from ``BALLET_BOT_TRAVIS_*`` variables."""
        api_url = os.environ.get("BALLET_BOT_TRAVIS_API_URL", "").strip().rstrip("/")
        token = os.environ.get("BALLET_BOT_TRAVIS_TOKEN", "").strip() or None
        if api_url:
            return cls(api_url=api_url, token=token)
        return cls(token=token)


class TravisClient:
    """Fetch build records from the Travis API v3."""

    def __init__(
        self,
        config: TravisConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client, creating an owned HTTP client if needed."""
        self._config = config or TravisConfig()
        headers = {
            "Travis-API-Version": "3",
            "User-Agent": self._config.user_agent,
        }
        if self._config.token:
            headers["Authorization"] = f"token {self._config.token}"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=self._config.timeout_s, headers=headers
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> TravisClient:
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

    async def get_build(self, build_id: str) -> BuildRecord:
        """Return the build snapshot for ``build_id``."""
        url = f"{self._config.api_url}/build/{build_id}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise CIProviderError.unreachable(build_id, exc) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise CIProviderError.http_error(build_id, response.status_code)
        try:
            return msgspec.convert(response.json(), type=BuildRecord)
        except msgspec.ValidationError as exc:
            raise CIProviderError.malformed(build_id, exc) from exc

    async def does_build_pass_all_checks(self, build_id: str) -> bool:
        """Return True when build ``build_id`` passed."""
        build = await self.get_build(build_id)
        return build.passed
