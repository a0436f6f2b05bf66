"""Per-event state shared by guards and actions.

An :class:`EventContext` lives for exactly one webhook event. It fetches the
CI build, the head commit and the pull request proposal lazily and at most
once, so every guard list sees the same snapshot.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from ballet_bot.logging import format_log_message, get_logger, log_info
from ballet_bot.pruning.classification import ClassificationResult, explain
from ballet_bot.pruning.models import PullRequestProposal

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from ballet_bot.ci.models import BuildRecord
    from ballet_bot.ci.travis import CIStatusProvider
    from ballet_bot.config.project import ProjectConfig
    from ballet_bot.github.client import RemoteObjectStore
    from ballet_bot.github.models import GitCommit

    from .events import CheckRunEvent

logger = get_logger(__name__)


class Action(enum.StrEnum):
    """Remote action chosen for an event."""

    MERGE = "merge"
    CLOSE = "close"
    PRUNE = "prune"
    NONE = "none"

    @property
    def verb(self) -> str:
        """Return the progressive form used in decision log lines."""
        return {
            Action.MERGE: "merging",
            Action.CLOSE: "closing",
            Action.PRUNE: "pruning",
        }.get(self, "acting")


class EventState(enum.StrEnum):
    """Lifecycle of a single event."""

    RECEIVED = "received"
    CLASSIFIED = "classified"
    MERGE = "merge"
    CLOSE = "close"
    PRUNE = "prune"
    NONE = "none"
    DONE = "done"


@dc.dataclass(slots=True)
class DecisionLog:
    """Ordered, human-readable record of what the engine decided and why."""

    lines: list[str] = dc.field(default_factory=list)

    def record(self, template: str, *args: object) -> None:
        """Append a line and mirror it to the service log."""
        line = format_log_message(template, *args)
        self.lines.append(line)
        log_info(logger, "%s", line)

    def __iter__(self) -> cabc.Iterator[str]:
        """Iterate over recorded lines in order."""
        return iter(self.lines)

    def __len__(self) -> int:
        """Return the number of recorded lines."""
        return len(self.lines)


class EventContext:
    """Lazily fetched facts about one event."""

    def __init__(  # noqa: PLR0913
        self,
        event: CheckRunEvent,
        *,
        build_id: str,
        store: RemoteObjectStore,
        ci: CIStatusProvider,
        config: ProjectConfig,
        log: DecisionLog,
    ) -> None:
        """Bind the event to the resources opened for it."""
        self.event = event
        self.build_id = build_id
        self.store = store
        self.ci = ci
        self.config = config
        self.log = log
        self._build: BuildRecord | None = None
        self._head_commit: GitCommit | None = None
        self._classification: ClassificationResult | None = None

    async def build(self) -> BuildRecord:
        """Return the CI build behind the check run."""
        if self._build is None:
            self._build = await self.ci.get_build(self.build_id)
        return self._build

    async def passed(self) -> bool:
        """Return True when the build passed all checks."""
        return (await self.build()).passed

    async def head_commit(self) -> GitCommit:
        """Return the commit the check ran against."""
        if self._head_commit is None:
            self._head_commit = await self.store.get_commit(
                self.event.repo, self.event.head_sha
            )
        return self._head_commit

    async def proposal(self) -> PullRequestProposal | None:
        """Return the pull request under test, if the build has one."""
        number = (await self.build()).pull_request_number
        if number is None:
            return None
        repo = self.event.repo
        pull_request = await self.store.get_pull_request(repo, number)
        files = await self.store.list_pull_request_files(repo, number)
        return PullRequestProposal.from_github(pull_request, files)

    async def classification(self) -> ClassificationResult | None:
        """Classify the pull request under test.

        ``None`` means the build is not attached to a pull request.
        """
        if self._classification is None:
            proposal = await self.proposal()
            if proposal is None:
                return None
            self._classification = explain(
                proposal, boilerplate=self.config.features.boilerplate
            )
            if self._classification.ambiguity is not None:
                self.log.record(
                    "Pull request #%d does not propose a feature: %s",
                    proposal.number,
                    self._classification.ambiguity,
                )
        return self._classification
