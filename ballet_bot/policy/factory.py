"""Wire the policy engine to the GitHub and Travis HTTP clients."""

from __future__ import annotations

import contextlib
import typing as typ

from ballet_bot.ci.travis import TravisClient, TravisConfig
from ballet_bot.github.client import GitHubRestClient, GitHubRestConfig

from .engine import EventResources, PolicyEngine, ResourceFactory

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .events import CheckRunEvent


def rest_resources(
    github_config: GitHubRestConfig, travis_config: TravisConfig
) -> ResourceFactory:
    """Return a factory opening fresh HTTP clients for every event."""

    @contextlib.asynccontextmanager
    async def open_resources(
        event: CheckRunEvent,
    ) -> cabc.AsyncIterator[EventResources]:
        async with contextlib.AsyncExitStack() as stack:
            store = await stack.enter_async_context(GitHubRestClient(github_config))
            ci = await stack.enter_async_context(TravisClient(travis_config))
            yield EventResources(store=store, ci=ci)

    return open_resources


def create_engine_from_env() -> PolicyEngine:
    """Build a :class:`PolicyEngine` from ``BALLET_BOT_*`` variables.

    Raises
    ------
    GitHubConfigError
        If ``BALLET_BOT_GITHUB_TOKEN`` is missing or empty.

    """
    return PolicyEngine(
        rest_resources(GitHubRestConfig.from_env(), TravisConfig.from_env())
    )
