"""Configuration errors."""

from __future__ import annotations


class ProjectConfigError(ValueError):
    """Raised when a repository's ``ballet.yml`` cannot be used.

    Attributes
    ----------
    issues
        Individual problems found while parsing or validating the file.

    """

    def __init__(self, issues: list[str]) -> None:
        """Capture the issues while keeping an aggregated message."""
        super().__init__("\n".join(issues))
        self.issues = issues
