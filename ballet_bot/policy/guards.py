"""Named guard predicates for each remote action.

Each action has an ordered tuple of guards. Evaluation stops at the first
guard that does not hold and records ``"Not <verb> because <reason>"`` in
the decision log, so the log reads the same as a maintainer would explain
the bot's behaviour.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import typing as typ

from .context import Action

if typ.TYPE_CHECKING:
    from .context import EventContext

GuardCheck = cabc.Callable[["EventContext"], cabc.Awaitable[bool]]


@dc.dataclass(frozen=True, slots=True)
class Guard:
    """A single named precondition of an action."""

    name: str
    reason: str
    check: GuardCheck


async def is_pull_request(ctx: EventContext) -> bool:
    """Return True when the build was triggered by a pull request."""
    return (await ctx.build()).is_pull_request


async def build_passed(ctx: EventContext) -> bool:
    """Return True when the build passed."""
    return await ctx.passed()


async def build_failed(ctx: EventContext) -> bool:
    """Return True when the build did not pass."""
    return not await ctx.passed()


async def proposes_feature(ctx: EventContext) -> bool:
    """Return True when the pull request adds exactly one feature."""
    result = await ctx.classification()
    return result is not None and result.is_feature_proposing


async def auto_merge_enabled(ctx: EventContext) -> bool:
    """Return True unless ``auto_merge_accepted_features`` is ``no``."""
    return ctx.config.auto_merge_enabled


async def auto_close_enabled(ctx: EventContext) -> bool:
    """Return True unless ``auto_close_rejected_features`` is ``no``."""
    return ctx.config.auto_close_enabled


async def pruning_enabled(ctx: EventContext) -> bool:
    """Return True unless ``pruning_action`` is ``no_action``."""
    return ctx.config.pruning_enabled


async def on_base_after_merge(ctx: EventContext) -> bool:
    """Return True for merge commits checked on the base branch.

    A commit with a single parent is a direct push and never qualifies.
    """
    if ctx.event.head_branch != ctx.config.github.base_branch:
        return False
    return (await ctx.head_commit()).is_merge


MERGE_GUARDS: tuple[Guard, ...] = (
    Guard("pull_request", "not a pull request", is_pull_request),
    Guard("build_passed", "not passing", build_passed),
    Guard("feature_proposal", "not proposing a feature", proposes_feature),
    Guard("auto_merge", "config", auto_merge_enabled),
)

CLOSE_GUARDS: tuple[Guard, ...] = (
    Guard("pull_request", "not a pull request", is_pull_request),
    Guard("build_failed", "passed all checks", build_failed),
    Guard("feature_proposal", "not proposing a feature", proposes_feature),
    Guard("auto_close", "config", auto_close_enabled),
)

PRUNE_GUARDS: tuple[Guard, ...] = (
    Guard("merge_on_base", "not on master on merge", on_base_after_merge),
    Guard("build_passed", "Travis is failing", build_passed),
    Guard("pruning_enabled", "config", pruning_enabled),
)

GUARDS: cabc.Mapping[Action, tuple[Guard, ...]] = {
    Action.PRUNE: PRUNE_GUARDS,
    Action.MERGE: MERGE_GUARDS,
    Action.CLOSE: CLOSE_GUARDS,
}


async def first_failing(
    guards: cabc.Iterable[Guard], ctx: EventContext
) -> Guard | None:
    """Return the first guard that does not hold, or ``None`` if all do."""
    for guard in guards:
        if not await guard.check(ctx):
            return guard
    return None


async def permits(action: Action, ctx: EventContext) -> bool:
    """Evaluate the guards of ``action`` and log the reason for a refusal."""
    failed = await first_failing(GUARDS[action], ctx)
    if failed is None:
        return True
    ctx.log.record("Not %s because %s", action.verb, failed.reason)
    return False
