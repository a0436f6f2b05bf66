"""Feature classification, redundancy resolution and pruning commits."""

from __future__ import annotations

from .classification import ClassificationResult, classify, explain, is_boilerplate
from .errors import (
    ActionConflict,
    ClassificationAmbiguous,
    PruningError,
    PublishError,
    RedundancyComputationError,
)
from .models import (
    AcceptedFeature,
    Feature,
    FileChange,
    PruningCommit,
    PruningOutcome,
    PublishMode,
    PullRequestProposal,
    RedundancySet,
    RedundantProposal,
    TreeChange,
    TreeChangeKind,
    TreeSnapshot,
)
from .redundancy import (
    AnyOfPolicy,
    EquivalenceClassPolicy,
    RedundancyPolicy,
    SameNamePolicy,
    SamePathPolicy,
    collect_open_proposals,
    find_accepted_feature,
    policy_from_options,
    resolve,
)
from .synthesis import BOT_AUTHOR, PruningCommitSynthesizer
from .trees import DerivedTree, changed_files, derive_tree, snapshot

__all__ = [
    "BOT_AUTHOR",
    "AcceptedFeature",
    "ActionConflict",
    "AnyOfPolicy",
    "ClassificationAmbiguous",
    "ClassificationResult",
    "DerivedTree",
    "EquivalenceClassPolicy",
    "Feature",
    "FileChange",
    "PruningCommit",
    "PruningCommitSynthesizer",
    "PruningError",
    "PruningOutcome",
    "PublishError",
    "PublishMode",
    "PullRequestProposal",
    "RedundancyComputationError",
    "RedundancyPolicy",
    "RedundancySet",
    "RedundantProposal",
    "SameNamePolicy",
    "SamePathPolicy",
    "TreeChange",
    "TreeChangeKind",
    "TreeSnapshot",
    "changed_files",
    "classify",
    "collect_open_proposals",
    "derive_tree",
    "explain",
    "find_accepted_feature",
    "is_boilerplate",
    "policy_from_options",
    "resolve",
    "snapshot",
]
