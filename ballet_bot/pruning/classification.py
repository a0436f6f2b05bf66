"""Decide whether a pull request proposes exactly one new feature.

A pull request is feature-proposing when, after ignoring boilerplate such as
package initialisers, exactly one file remains and that file was added.
Everything here is pure.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ
from pathlib import PurePosixPath

from .errors import ClassificationAmbiguous
from .models import Feature

if typ.TYPE_CHECKING:
    from .models import FileChange, PullRequestProposal

DEFAULT_BOILERPLATE: tuple[str, ...] = ("__init__.py",)


@dataclasses.dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Outcome of classifying one proposal.

    Exactly one of ``feature`` and ``ambiguity`` is set.
    """

    feature: Feature | None
    ambiguity: ClassificationAmbiguous | None = None

    @property
    def is_feature_proposing(self) -> bool:
        """Return True when the proposal adds exactly one feature."""
        return self.feature is not None


def is_boilerplate(
    path: str, markers: cabc.Collection[str] = DEFAULT_BOILERPLATE
) -> bool:
    """Return True when ``path`` is a boilerplate file such as ``__init__.py``."""
    return PurePosixPath(path).name in markers


def feature_files(
    changes: cabc.Iterable[FileChange],
    markers: cabc.Collection[str] = DEFAULT_BOILERPLATE,
) -> list[FileChange]:
    """Return the changes left after dropping boilerplate paths."""
    return [change for change in changes if not is_boilerplate(change.path, markers)]


def explain(
    proposal: PullRequestProposal,
    *,
    boilerplate: cabc.Collection[str] = DEFAULT_BOILERPLATE,
) -> ClassificationResult:
    """Classify ``proposal`` and say why when it is not feature-proposing."""
    remaining = feature_files(proposal.changed_files, boilerplate)
    if not remaining:
        return ClassificationResult(None, ClassificationAmbiguous.no_feature_file())
    if len(remaining) > 1:
        paths = [change.path for change in remaining]
        return ClassificationResult(None, ClassificationAmbiguous.multiple_files(paths))
    (change,) = remaining
    if not change.is_added:
        return ClassificationResult(
            None, ClassificationAmbiguous.not_added(change.path, change.status)
        )
    return ClassificationResult(Feature(change.path))


def classify(
    proposal: PullRequestProposal,
    *,
    boilerplate: cabc.Collection[str] = DEFAULT_BOILERPLATE,
) -> bool:
    """Return True iff ``proposal`` adds exactly one non-boilerplate file."""
    return explain(proposal, boilerplate=boilerplate).is_feature_proposing
