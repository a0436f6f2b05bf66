"""Load ``ballet.yml`` from text or straight from the repository."""

from __future__ import annotations

import typing as typ

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ballet_bot.logging import get_logger, log_debug

from .errors import ProjectConfigError
from .project import ProjectConfig

if typ.TYPE_CHECKING:
    from ballet_bot.github.client import RemoteObjectStore
    from ballet_bot.github.models import RepoRef

CONFIG_FILE = "ballet.yml"
YAML_VERSION = (1, 2)
_TOGGLE_KEYS = ("auto_merge_accepted_features", "auto_close_rejected_features")

logger = get_logger(__name__)


def parse_project_config(text: str) -> ProjectConfig:
    """Parse ``ballet.yml`` contents into a :class:`ProjectConfig`.

    When the document has a ``default`` mapping, that section is used, which
    matches the layout of the project template. Empty documents produce the
    defaults.

    Raises
    ------
    ProjectConfigError
        If the YAML is malformed or does not match the schema.

    """
    try:
        loaded = _yaml().load(text)
    except YAMLError as exc:
        raise ProjectConfigError([f"failed to parse YAML: {exc}"]) from exc

    if loaded is None:
        return ProjectConfig()
    if not isinstance(loaded, dict):
        raise ProjectConfigError(["top level of ballet.yml must be a mapping"])

    section = loaded.get("default", loaded)
    if section is None:
        return ProjectConfig()
    if not isinstance(section, dict):
        raise ProjectConfigError(["'default' section of ballet.yml must be a mapping"])

    try:
        return msgspec.convert(_normalise_toggles(section), type=ProjectConfig)
    except msgspec.ValidationError as exc:
        raise ProjectConfigError([f"schema validation failed: {exc}"]) from exc


async def load_project_config(
    store: RemoteObjectStore, repo: RepoRef, *, ref: str | None = None
) -> ProjectConfig:
    """Fetch and parse ``ballet.yml`` from ``repo``.

    A repository without the file gets the default configuration.
    """
    text = await store.get_file_contents(repo, CONFIG_FILE, ref=ref)
    if text is None:
        log_debug(logger, "%s has no %s; using defaults", repo.slug, CONFIG_FILE)
        return ProjectConfig()
    config = parse_project_config(text)
    log_debug(logger, "Loaded %s for %s: %r", CONFIG_FILE, repo.slug, config)
    return config


def _normalise_toggles(section: dict[str, typ.Any]) -> dict[str, typ.Any]:
    """Map YAML booleans on yes/no options to their string form."""
    github = section.get("github")
    if not isinstance(github, dict):
        return section
    normalised = dict(github)
    for key in _TOGGLE_KEYS:
        value = normalised.get(key)
        if isinstance(value, bool):
            normalised[key] = "yes" if value else "no"
    return {**section, "github": normalised}


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    return yaml
