"""Structural tree rewriting against the remote object store.

Trees are never patched textually. To drop a path, only the trees on that
path's ancestry are re-created, each from its complete list of entries, so
every untouched blob and subtree keeps its object id. Trees left empty by a
removal are dropped from their parent, as git does not record empty
directories.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from ballet_bot.github.errors import TruncatedTreeError
from ballet_bot.github.models import GitTreeEntry

from .models import FileChange, TreeSnapshot

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from ballet_bot.github.client import RemoteObjectStore
    from ballet_bot.github.models import GitTree, RepoRef

_TREE = "tree"
_BLOB = "blob"


async def _read_tree(store: RemoteObjectStore, repo: RepoRef, sha: str) -> GitTree:
    """Return the complete listing of tree ``sha``.

    Raises
    ------
    TruncatedTreeError
        If GitHub cut the listing short.

    """
    tree = await store.get_tree(repo, sha)
    if tree.truncated:
        raise TruncatedTreeError.for_tree(sha)
    return tree


@dataclasses.dataclass(slots=True)
class _RemovalNode:
    """Paths to remove below one directory, keyed by entry name."""

    files: set[str] = dataclasses.field(default_factory=set)
    children: dict[str, _RemovalNode] = dataclasses.field(default_factory=dict)

    def paths(self, prefix: str) -> list[str]:
        """Return every path planned below this node."""
        found = [f"{prefix}{name}" for name in sorted(self.files)]
        for name in sorted(self.children):
            found.extend(self.children[name].paths(f"{prefix}{name}/"))
        return found


def plan_removals(paths: cabc.Iterable[str]) -> _RemovalNode:
    """Build a directory trie from slash-separated ``paths``."""
    root = _RemovalNode()
    for path in paths:
        parts = [part for part in path.strip("/").split("/") if part]
        if not parts:
            continue
        node = root
        for part in parts[:-1]:
            node = node.children.setdefault(part, _RemovalNode())
        node.files.add(parts[-1])
    return root


@dataclasses.dataclass(frozen=True, slots=True)
class DerivedTree:
    """Result of removing paths from a tree.

    Attributes
    ----------
    sha
        Root tree id after the removal; equal to the base tree id when
        nothing was removed.
    removed
        Paths that existed and are now absent.
    missing
        Requested paths that were not present in the base tree.

    """

    sha: str
    removed: tuple[str, ...]
    missing: tuple[str, ...]

    @property
    def changed(self) -> bool:
        """Return True when at least one path was removed."""
        return bool(self.removed)


@dataclasses.dataclass(slots=True)
class _Rewrite:
    store: RemoteObjectStore
    repo: RepoRef
    removed: list[str] = dataclasses.field(default_factory=list)
    missing: list[str] = dataclasses.field(default_factory=list)

    async def rewrite(self, tree_sha: str, node: _RemovalNode, prefix: str) -> str | None:
        """Return the id of the rewritten tree, or ``None`` if it became empty."""
        tree = await _read_tree(self.store, self.repo, tree_sha)
        kept: list[GitTreeEntry] = []
        seen_files: set[str] = set()
        seen_dirs: set[str] = set()
        changed = False

        for entry in tree.tree:
            if entry.path in node.files and entry.type == _BLOB:
                seen_files.add(entry.path)
                self.removed.append(f"{prefix}{entry.path}")
                changed = True
                continue
            child = node.children.get(entry.path)
            if child is not None and entry.type == _TREE:
                seen_dirs.add(entry.path)
                child_sha = await self.rewrite(entry.sha, child, f"{prefix}{entry.path}/")
                if child_sha is None:
                    changed = True
                    continue
                if child_sha != entry.sha:
                    entry = GitTreeEntry(  # noqa: PLW2901
                        path=entry.path, mode=entry.mode, type=entry.type, sha=child_sha
                    )
                    changed = True
            kept.append(entry)

        self.missing.extend(
            f"{prefix}{name}" for name in sorted(node.files - seen_files)
        )
        for name in sorted(node.children.keys() - seen_dirs):
            self.missing.extend(node.children[name].paths(f"{prefix}{name}/"))

        if not changed:
            return tree_sha
        if not kept:
            return None
        return await self.store.create_tree(self.repo, kept)


async def derive_tree(
    store: RemoteObjectStore,
    repo: RepoRef,
    root_tree_sha: str,
    paths: cabc.Iterable[str],
) -> DerivedTree:
    """Return the tree obtained by removing ``paths`` from ``root_tree_sha``.

    Paths that do not exist are reported in :attr:`DerivedTree.missing`
    and otherwise ignored, so deriving twice with the same paths is a
    no-op the second time.

    Raises
    ------
    TruncatedTreeError
        If GitHub lists any tree on a removal path only partially.

    """
    rewrite = _Rewrite(store, repo)
    new_sha = await rewrite.rewrite(root_tree_sha, plan_removals(paths), "")
    if new_sha is None:
        new_sha = await store.create_tree(repo, [])
    return DerivedTree(
        sha=new_sha,
        removed=tuple(sorted(rewrite.removed)),
        missing=tuple(sorted(rewrite.missing)),
    )


async def snapshot(
    store: RemoteObjectStore, repo: RepoRef, commit_sha: str
) -> TreeSnapshot:
    """Flatten the tree of ``commit_sha`` into a :class:`TreeSnapshot`."""
    commit = await store.get_commit(repo, commit_sha)
    entries: dict[str, str] = {}
    pending = [(commit.tree.sha, "")]
    while pending:
        tree_sha, prefix = pending.pop()
        tree = await _read_tree(store, repo, tree_sha)
        for entry in tree.tree:
            if entry.type == _TREE:
                pending.append((entry.sha, f"{prefix}{entry.path}/"))
            else:
                entries[f"{prefix}{entry.path}"] = entry.sha
    return TreeSnapshot(base_commit_sha=commit_sha, entries=entries)


async def changed_files(
    store: RemoteObjectStore,
    repo: RepoRef,
    old_tree_sha: str,
    new_tree_sha: str,
) -> list[FileChange]:
    """Return file-level changes between two trees.

    Only subtrees whose ids differ are fetched, so the cost is proportional
    to the size of the change rather than the size of the repository.
    """
    changes: list[FileChange] = []
    await _diff_trees(store, repo, old_tree_sha, new_tree_sha, "", changes)
    return sorted(changes, key=lambda change: change.path)


async def _tree_entries(
    store: RemoteObjectStore, repo: RepoRef, sha: str | None
) -> dict[str, GitTreeEntry]:
    if sha is None:
        return {}
    tree = await _read_tree(store, repo, sha)
    return {entry.path: entry for entry in tree.tree}


async def _diff_trees(  # noqa: PLR0913
    store: RemoteObjectStore,
    repo: RepoRef,
    old_sha: str | None,
    new_sha: str | None,
    prefix: str,
    changes: list[FileChange],
) -> None:
    old_entries = await _tree_entries(store, repo, old_sha)
    new_entries = await _tree_entries(store, repo, new_sha)
    for name in sorted(old_entries.keys() | new_entries.keys()):
        old = old_entries.get(name)
        new = new_entries.get(name)
        if old is not None and new is not None and old.sha == new.sha:
            continue
        path = f"{prefix}{name}"
        old_tree = old.sha if old is not None and old.type == _TREE else None
        new_tree = new.sha if new is not None and new.type == _TREE else None
        if old_tree is not None or new_tree is not None:
            await _diff_trees(store, repo, old_tree, new_tree, f"{path}/", changes)
        old_file = old is not None and old.type != _TREE
        new_file = new is not None and new.type != _TREE
        if old_file and new_file:
            changes.append(FileChange(path, "modified"))
        elif new_file:
            changes.append(FileChange(path, "added"))
        elif old_file:
            changes.append(FileChange(path, "removed"))
