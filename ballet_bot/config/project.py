"""Typed view of a repository's ``ballet.yml``."""

from __future__ import annotations

import typing as typ

import msgspec

Toggle = typ.Literal["yes", "no"]
PruningAction = typ.Literal["no_action", "make_pull_request", "commit_to_master"]
RedundancyPolicyName = typ.Literal["same_path", "same_name"]


class GitHubOptions(msgspec.Struct, kw_only=True, frozen=True):
    """Options under the ``github`` key.

    Attributes
    ----------
    auto_merge_accepted_features : {"yes", "no"}
        Merge feature proposals whose build passes.
    auto_close_rejected_features : {"yes", "no"}
        Close feature proposals whose build fails.
    pruning_action : {"no_action", "make_pull_request", "commit_to_master"}
        How redundant features are removed after a merge lands.
    base_branch : str
        Branch that accepted features are merged into.

    """

    auto_merge_accepted_features: Toggle = "yes"
    auto_close_rejected_features: Toggle = "yes"
    pruning_action: PruningAction = "commit_to_master"
    base_branch: str = "master"


class RedundancyOptions(msgspec.Struct, kw_only=True, frozen=True):
    """Options under the ``redundancy`` key.

    ``equivalence_classes`` lists groups of feature paths that supersede one
    another in addition to the base ``policy``.
    """

    policy: RedundancyPolicyName = "same_path"
    equivalence_classes: tuple[tuple[str, ...], ...] = ()


class FeatureOptions(msgspec.Struct, kw_only=True, frozen=True):
    """Options under the ``features`` key."""

    boilerplate: tuple[str, ...] = ("__init__.py",)


class ProjectConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Repository configuration consulted read-only by the policy engine."""

    github: GitHubOptions = msgspec.field(default_factory=GitHubOptions)
    redundancy: RedundancyOptions = msgspec.field(default_factory=RedundancyOptions)
    features: FeatureOptions = msgspec.field(default_factory=FeatureOptions)

    @property
    def auto_merge_enabled(self) -> bool:
        """Return True unless auto-merge is switched off."""
        return self.github.auto_merge_accepted_features != "no"

    @property
    def auto_close_enabled(self) -> bool:
        """Return True unless auto-close is switched off."""
        return self.github.auto_close_rejected_features != "no"

    @property
    def pruning_enabled(self) -> bool:
        """Return True unless pruning is configured as ``no_action``."""
        return self.github.pruning_action != "no_action"
