"""Lifecycle policy engine for completed check runs.

Each event moves through ``RECEIVED -> CLASSIFIED -> {PRUNE, MERGE, CLOSE,
NONE} -> DONE``. All three guard lists are evaluated against the same
snapshot so the decision log explains every action that did not fire; the
first permitted action in the order prune, merge, close is then taken.

Remote clients are opened per event through a :data:`ResourceFactory` and are
released on every exit path, including errors and cancellation.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import contextlib
import dataclasses as dc
import datetime as dt
import typing as typ

import httpx

from ballet_bot.ci.travis import build_id_from_details_url
from ballet_bot.config.loader import load_project_config
from ballet_bot.github.errors import (
    ActionConflict,
    GitHubAPIError,
    GitHubResponseShapeError,
)
from ballet_bot.logging import get_logger, log_warning
from ballet_bot.pruning.errors import PublishError
from ballet_bot.pruning.models import PublishMode
from ballet_bot.pruning.redundancy import (
    collect_open_proposals,
    find_accepted_feature,
    policy_from_options,
    resolve,
)
from ballet_bot.pruning.synthesis import PruningCommitSynthesizer

from .context import Action, DecisionLog, EventContext, EventState
from .guards import permits
from .observability import PolicyEventLogger

if typ.TYPE_CHECKING:
    from ballet_bot.ci.travis import CIStatusProvider
    from ballet_bot.github.client import RemoteObjectStore
    from ballet_bot.pruning.models import PruningOutcome

    from .events import CheckRunEvent

logger = get_logger(__name__)

_DECISION_ORDER = (Action.PRUNE, Action.MERGE, Action.CLOSE)
_REMOTE_ERRORS = (GitHubAPIError, GitHubResponseShapeError, httpx.HTTPError)


@dc.dataclass(frozen=True, slots=True)
class EventResources:
    """Remote clients scoped to a single event."""

    store: RemoteObjectStore
    ci: CIStatusProvider


ResourceFactory = cabc.Callable[
    ["CheckRunEvent"], contextlib.AbstractAsyncContextManager[EventResources]
]


@dc.dataclass(frozen=True, slots=True)
class EventOutcome:
    """What the engine did for one event.

    Attributes
    ----------
    delivery_id
        Webhook delivery the outcome belongs to.
    action
        Action that was chosen; ``NONE`` when every guard list refused.
    state
        Final lifecycle state; always ``DONE`` for returned outcomes.
    log
        Decision log lines in the order they were recorded.
    redundant
        Numbers of pull requests found redundant by a pruning run.
    pruning
        Result of the pruning commit, when one was attempted.

    """

    delivery_id: str
    action: Action
    state: EventState
    log: tuple[str, ...]
    redundant: tuple[int, ...] = ()
    pruning: PruningOutcome | None = None


@dc.dataclass(slots=True)
class _Progress:
    state: EventState = EventState.RECEIVED
    action: Action = Action.NONE
    redundant: tuple[int, ...] = ()
    pruning: PruningOutcome | None = None


class PolicyEngine:
    """Decide and carry out merge, close and prune actions."""

    def __init__(
        self,
        resources: ResourceFactory,
        *,
        event_logger: PolicyEventLogger | None = None,
    ) -> None:
        """Configure the engine with the factory that opens remote clients."""
        self._resources = resources
        self._events = event_logger or PolicyEventLogger()

    async def handle(self, event: CheckRunEvent) -> EventOutcome:
        """Handle one completed check run.

        Raises
        ------
        PublishError
            If the pruning commit could not be published.
        RedundancyComputationError
            If the open proposals could not be enumerated.
        GitHubAPIError
            If a merge or close call failed for reasons other than the pull
            request having changed state already.
        CIProviderError
            If the build could not be fetched.
        ProjectConfigError
            If ``ballet.yml`` is invalid.

        Every exception carries the decision log recorded so far as notes.

        """
        started = dt.datetime.now(dt.UTC)
        log = DecisionLog()
        progress = _Progress()
        self._events.log_event_received(event)
        log.record(
            "Responding to check_run (id=%s) on %s@%s",
            event.delivery_id,
            event.repo.slug,
            event.head_sha[:7],
        )
        try:
            async with self._resources(event) as resources:
                await self._run(event, resources, log, progress)
        except asyncio.CancelledError:
            log_warning(
                logger,
                "Handling of %s cancelled in state %s",
                event.delivery_id,
                progress.state,
            )
            raise
        except Exception as exc:
            for line in log:
                exc.add_note(line)
            self._events.log_event_failed(
                event, exc, dt.datetime.now(dt.UTC) - started
            )
            raise

        progress.state = EventState.DONE
        return EventOutcome(
            delivery_id=event.delivery_id,
            action=progress.action,
            state=progress.state,
            log=tuple(log),
            redundant=progress.redundant,
            pruning=progress.pruning,
        )

    async def _run(
        self,
        event: CheckRunEvent,
        resources: EventResources,
        log: DecisionLog,
        progress: _Progress,
    ) -> None:
        if event.details_url is None:
            log.record("Not acting because the check run has no details url")
            progress.state = EventState.NONE
            return
        try:
            build_id = build_id_from_details_url(event.details_url)
        except ValueError as exc:
            log.record("Not acting because %s", exc)
            progress.state = EventState.NONE
            return

        config = await load_project_config(resources.store, event.repo)
        ctx = EventContext(
            event,
            build_id=build_id,
            store=resources.store,
            ci=resources.ci,
            config=config,
            log=log,
        )
        build = await ctx.build()
        log.record("Getting a check from branch: %s", build.branch.name)
        log.record("On commit: %s", build.commit.message)
        progress.state = EventState.CLASSIFIED

        permitted = [action for action in _DECISION_ORDER if await permits(action, ctx)]
        progress.action = permitted[0] if permitted else Action.NONE
        progress.state = EventState(progress.action.value)

        match progress.action:
            case Action.PRUNE:
                await self._prune(ctx, progress)
            case Action.MERGE:
                await self._merge(ctx)
            case Action.CLOSE:
                await self._close(ctx)
            case Action.NONE:
                pass

    async def _merge(self, ctx: EventContext) -> None:
        number = typ.cast("int", (await ctx.build()).pull_request_number)
        repo = ctx.event.repo
        try:
            result = await ctx.store.merge_pull_request(repo, number)
        except ActionConflict as exc:
            self._skipped(ctx, Action.MERGE, exc)
        else:
            ctx.log.record("Merged pull request #%d (%s)", number, result.sha)
            self._events.log_action_taken(ctx.event, Action.MERGE, f"#{number}")
        await self._close(ctx)

    async def _close(self, ctx: EventContext) -> None:
        number = typ.cast("int", (await ctx.build()).pull_request_number)
        try:
            await ctx.store.update_pull_request_state(ctx.event.repo, number, "closed")
        except ActionConflict as exc:
            self._skipped(ctx, Action.CLOSE, exc)
            return
        ctx.log.record("Closed pull request #%d", number)
        self._events.log_action_taken(ctx.event, Action.CLOSE, f"#{number}")

    def _skipped(self, ctx: EventContext, action: Action, exc: ActionConflict) -> None:
        ctx.log.record("Skipped %s: %s", action, exc)
        self._events.log_action_skipped(ctx.event, action, str(exc))

    async def _prune(self, ctx: EventContext, progress: _Progress) -> None:
        repo = ctx.event.repo
        config = ctx.config
        base_branch = config.github.base_branch
        boilerplate = config.features.boilerplate

        accepted = await find_accepted_feature(
            ctx.store,
            repo,
            await ctx.head_commit(),
            base_branch=base_branch,
            boilerplate=boilerplate,
        )
        if accepted is None:
            ctx.log.record(
                "Merge %s did not add a single feature; nothing to prune",
                ctx.event.head_sha[:7],
            )
            return

        proposals = await collect_open_proposals(ctx.store, repo, base_branch)
        redundant = resolve(
            accepted.feature,
            proposals,
            base_branch=base_branch,
            accepted_number=accepted.pull_request_number,
            policy=policy_from_options(config.redundancy),
            boilerplate=boilerplate,
        )
        progress.redundant = redundant.numbers
        if not redundant:
            ctx.log.record("No redundant features for %s", accepted.feature.path)
            return
        ctx.log.record(
            "Found redundant features: %s (pull requests %s)",
            ", ".join(feature.path for feature in redundant.features),
            ", ".join(f"#{number}" for number in redundant.numbers),
        )

        try:
            base_head = await ctx.store.resolve_ref(repo, base_branch)
        except _REMOTE_ERRORS as exc:
            raise PublishError.failed("resolve_ref", exc) from exc
        outcome = await PruningCommitSynthesizer(ctx.store).synthesize(
            repo,
            branch=base_branch,
            base_head=base_head,
            features=redundant.features,
            mode=PublishMode(config.github.pruning_action),
        )
        progress.pruning = outcome
        if outcome.published:
            ctx.log.record(
                "Pruned %s in %s on %s",
                ", ".join(outcome.removed),
                outcome.commit_sha,
                outcome.published_to,
            )
            self._events.log_pruning_published(ctx.event, outcome)
        else:
            ctx.log.record(
                "Nothing to prune; already absent: %s", ", ".join(outcome.missing)
            )
