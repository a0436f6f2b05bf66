"""Policy engine deciding merge, close and prune actions for check runs."""

from __future__ import annotations

from .context import Action, DecisionLog, EventContext, EventState
from .engine import EventOutcome, EventResources, PolicyEngine, ResourceFactory
from .events import (
    CHECK_RUN_EVENT,
    COMPLETED_ACTION,
    CheckRunEvent,
    CheckRunPayload,
    InvalidPayloadError,
    decode_payload,
    parse_check_run_event,
)
from .guards import CLOSE_GUARDS, MERGE_GUARDS, PRUNE_GUARDS, Guard, permits
from .observability import ErrorCategory, PolicyEventLogger, categorize_error

__all__ = [
    "CHECK_RUN_EVENT",
    "CLOSE_GUARDS",
    "COMPLETED_ACTION",
    "MERGE_GUARDS",
    "PRUNE_GUARDS",
    "Action",
    "CheckRunEvent",
    "CheckRunPayload",
    "DecisionLog",
    "ErrorCategory",
    "EventContext",
    "EventOutcome",
    "EventResources",
    "EventState",
    "Guard",
    "InvalidPayloadError",
    "PolicyEngine",
    "PolicyEventLogger",
    "ResourceFactory",
    "categorize_error",
    "decode_payload",
    "parse_check_run_event",
    "permits",
]
