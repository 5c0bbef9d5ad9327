from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from .boundary import as_utc, base_depth, infer_boundary

LOG = logging.getLogger(__name__)

RemoveTree = Callable[[Path], None]


@dataclass
class PruneStats:
    root: Path
    cutoff: datetime
    visited: int = 0
    kept: int = 0
    skipped: int = 0
    deleted: List[Path] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class PruneWalker:
    """Depth-first pruning of one company tree.

    Every directory is compared against ``cutoff`` by its inferred boundary;
    an expired directory is removed whole and its children are never visited.
    Files are never touched on their own. Read and delete failures are logged
    and recorded, and the walk carries on with the rest of the tree.
    """

    def __init__(
        self,
        root: Path,
        cutoff: datetime,
        now: Optional[datetime] = None,
        remove_tree: RemoveTree = shutil.rmtree,
    ) -> None:
        self._root = Path(root)
        self._cutoff = as_utc(cutoff)
        self._now = as_utc(now) if now else datetime.now(timezone.utc)
        self._depth = base_depth(self._root)
        self._remove_tree = remove_tree
        self._stats = PruneStats(root=self._root, cutoff=self._cutoff)

    def prune(self) -> PruneStats:
        if self._root.is_symlink() or not self._root.is_dir():
            self._record_error(self._root, "not a directory")
            return self._stats

        self._stats.visited += 1
        if self._expired(self._root):
            self._delete(self._root)
            return self._stats
        self._stats.kept += 1

        for dirpath, dirnames, filenames in os.walk(self._root, onerror=self._on_walk_error):
            self._stats.skipped += len(filenames)
            descend = []
            for name in sorted(dirnames):
                path = Path(dirpath) / name
                self._stats.visited += 1
                if path.is_symlink():
                    LOG.debug("Skipping symlink %s", path)
                    self._stats.skipped += 1
                    continue
                if self._expired(path):
                    self._delete(path)
                    continue
                self._stats.kept += 1
                descend.append(name)
            # os.walk only descends into what is left in dirnames.
            dirnames[:] = descend

        return self._stats

    def _expired(self, path: Path) -> bool:
        boundary = infer_boundary(path, self._depth, now=self._now)
        LOG.debug("Walk found %s: DirTime = %s DeleteTime = %s", path, boundary, self._cutoff)
        return boundary < self._cutoff

    def _delete(self, path: Path) -> None:
        LOG.info("Removing %s", path)
        try:
            self._remove_tree(path)
        except OSError as exc:
            self._record_error(path, f"could not remove: {exc}")
            return
        self._stats.deleted.append(path)

    def _on_walk_error(self, exc: OSError) -> None:
        self._record_error(Path(exc.filename) if exc.filename else self._root, str(exc))

    def _record_error(self, path: Path, message: str) -> None:
        LOG.error("Error in path %s : %s", path, message)
        self._stats.errors.append(f"{path}: {message}")


def prune(
    root: Path,
    cutoff: datetime,
    now: Optional[datetime] = None,
    remove_tree: RemoveTree = shutil.rmtree,
) -> PruneStats:
    return PruneWalker(root, cutoff, now=now, remove_tree=remove_tree).prune()
