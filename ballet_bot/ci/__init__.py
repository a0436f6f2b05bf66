"""CI build lookups consumed by the policy engine."""

from __future__ import annotations

from .errors import CIProviderError
from .models import BuildBranch, BuildCommit, BuildRecord
from .travis import (
    CIStatusProvider,
    TravisClient,
    TravisConfig,
    build_id_from_details_url,
)

__all__ = [
    "BuildBranch",
    "BuildCommit",
    "BuildRecord",
    "CIProviderError",
    "CIStatusProvider",
    "TravisClient",
    "TravisConfig",
    "build_id_from_details_url",
]
