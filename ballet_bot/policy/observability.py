"""Structured log events for policy decisions.

Events are emitted through femtologging as single pre-formatted lines with
``key=value`` pairs so they can be parsed by log aggregators.
"""

from __future__ import annotations

import enum
import typing as typ

from ballet_bot.ci.errors import CIProviderError
from ballet_bot.config.errors import ProjectConfigError
from ballet_bot.github.errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
)
from ballet_bot.logging import get_logger, log_error, log_info, log_warning
from ballet_bot.pruning.errors import PublishError, RedundancyComputationError

if typ.TYPE_CHECKING:
    import datetime as dt

    from ballet_bot.pruning.models import PruningOutcome

    from .events import CheckRunEvent

logger = get_logger(__name__)

_HTTP_SERVER_ERROR_THRESHOLD = 500


class PolicyEventType(enum.StrEnum):
    """Structured log event types."""

    EVENT_RECEIVED = "policy.event.received"
    ACTION_TAKEN = "policy.action.taken"
    ACTION_SKIPPED = "policy.action.skipped"
    EVENT_FAILED = "policy.event.failed"
    PRUNING_PUBLISHED = "pruning.commit.published"


class ErrorCategory(enum.StrEnum):
    """Categories for routing failure alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    CONCURRENT_UPDATE = "concurrent_update"
    CI_PROVIDER = "ci_provider"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (GitHubResponseShapeError, ErrorCategory.SCHEMA_DRIFT),
    (GitHubConfigError, ErrorCategory.CONFIGURATION),
    (ProjectConfigError, ErrorCategory.CONFIGURATION),
    (CIProviderError, ErrorCategory.CI_PROVIDER),
    (TimeoutError, ErrorCategory.TIMEOUT),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Pruning errors are categorised by the remote failure that caused them.
    """
    if isinstance(exc, PublishError) and exc.conflict:
        return ErrorCategory.CONCURRENT_UPDATE
    if isinstance(exc, PublishError | RedundancyComputationError) and isinstance(
        exc.__cause__, BaseException
    ):
        return categorize_error(exc.__cause__)

    if isinstance(exc, GitHubAPIError):
        if (
            exc.status_code is not None
            and exc.status_code < _HTTP_SERVER_ERROR_THRESHOLD
        ):
            return ErrorCategory.CLIENT_ERROR
        return ErrorCategory.TRANSIENT

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class PolicyEventLogger:
    """Emit structured policy events.

    INFO for decisions and actions, WARNING for actions that turned out to
    be no-ops, ERROR for failures.
    """

    def log_event_received(self, event: CheckRunEvent) -> None:
        """Log receipt of a check run event."""
        log_info(
            logger,
            "[%s] delivery_id=%s repo_slug=%s head_branch=%s head_sha=%s",
            PolicyEventType.EVENT_RECEIVED,
            event.delivery_id,
            event.repo.slug,
            event.head_branch,
            event.head_sha,
        )

    def log_action_taken(
        self, event: CheckRunEvent, action: str, target: str
    ) -> None:
        """Log a remote mutation performed for an event."""
        log_info(
            logger,
            "[%s] delivery_id=%s repo_slug=%s action=%s target=%s",
            PolicyEventType.ACTION_TAKEN,
            event.delivery_id,
            event.repo.slug,
            action,
            target,
        )

    def log_action_skipped(
        self, event: CheckRunEvent, action: str, reason: str
    ) -> None:
        """Log an action that was tolerated as a no-op."""
        log_warning(
            logger,
            "[%s] delivery_id=%s repo_slug=%s action=%s reason=%s",
            PolicyEventType.ACTION_SKIPPED,
            event.delivery_id,
            event.repo.slug,
            action,
            reason,
        )

    def log_pruning_published(
        self, event: CheckRunEvent, outcome: PruningOutcome
    ) -> None:
        """Log a published pruning commit."""
        log_info(
            logger,
            "[%s] delivery_id=%s repo_slug=%s commit_sha=%s published_to=%s "
            "removed=%s pull_request=%s",
            PolicyEventType.PRUNING_PUBLISHED,
            event.delivery_id,
            event.repo.slug,
            outcome.commit_sha,
            outcome.published_to,
            ",".join(outcome.removed),
            outcome.pull_request_number,
        )

    def log_event_failed(
        self,
        event: CheckRunEvent,
        error: BaseException,
        duration: dt.timedelta,
    ) -> None:
        """Log a failed event with error categorisation."""
        log_error(
            logger,
            "[%s] delivery_id=%s repo_slug=%s duration_seconds=%.3f "
            "error_type=%s error_category=%s error_message=%s",
            PolicyEventType.EVENT_FAILED,
            event.delivery_id,
            event.repo.slug,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )
