"""Repository and process configuration."""

from __future__ import annotations

from .errors import ProjectConfigError
from .loader import CONFIG_FILE, load_project_config, parse_project_config
from .project import (
    FeatureOptions,
    GitHubOptions,
    ProjectConfig,
    PruningAction,
    RedundancyOptions,
)
from .settings import BotSettings

__all__ = [
    "CONFIG_FILE",
    "BotSettings",
    "FeatureOptions",
    "GitHubOptions",
    "ProjectConfig",
    "ProjectConfigError",
    "PruningAction",
    "RedundancyOptions",
    "load_project_config",
    "parse_project_config",
]
