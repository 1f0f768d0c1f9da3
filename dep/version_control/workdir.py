"""
Working-directory reconciliation.

Compares materialized states against the live file system and writes
states back out for checkout, reset, merge, and stash.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dep.logging import get_dep_logger

from .objects import ChangeSet

logger = get_dep_logger("workdir")


@dataclass
class WorkingTreeStatus:
    """Classification of working-directory paths against the last commit."""

    active_branch: str
    last_commit: Optional[str]
    staged: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        """True when nothing is staged, modified, deleted, or untracked."""
        return not (self.staged or self.modified or self.untracked or self.deleted)


class WorkingDirectory:
    """
    File-system view of a repository's working tree.

    Paths are repository-relative and use forward slashes. Content is read
    and written as UTF-8 text with newlines preserved exactly. Bytes that are
    not valid UTF-8 decode to U+FFFD.
    """

    def __init__(self, root: Path, control_dir: str = ".dep"):
        self.root = Path(root)
        self.control_dir = control_dir

    def _full_path(self, path: str) -> Path:
        return self.root / Path(*path.split("/"))

    def list_files(self) -> List[str]:
        """All regular files under the root, excluding the control directory."""
        files: List[str] = []
        for entry in self.root.rglob("*"):
            relative = entry.relative_to(self.root)
            if relative.parts[0] == self.control_dir:
                continue
            if entry.is_file() and not entry.is_symlink():
                files.append(relative.as_posix())
        return sorted(files)

    def exists(self, path: str) -> bool:
        return self._full_path(path).is_file()

    def is_dir(self, path: str) -> bool:
        return self._full_path(path).is_dir()

    def files_under(self, path: str) -> List[str]:
        """Files at or below ``path`` (a file or a directory)."""
        prefix = path.strip("/")
        if prefix in ("", "."):
            return self.list_files()
        return [
            f for f in self.list_files() if f == prefix or f.startswith(prefix + "/")
        ]

    def read(self, path: str) -> str:
        with open(
            self._full_path(path), "r", encoding="utf-8", errors="replace", newline=""
        ) as f:
            return f.read()

    def read_optional(self, path: str) -> Optional[str]:
        """Read a file, or return None if it is not on disk."""
        if not self.exists(path):
            return None
        return self.read(path)

    def write(self, path: str, content: str) -> None:
        full_path = self._full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        with open(full_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)

    def remove(self, path: str) -> bool:
        """
        Delete a file from disk.

        Returns:
            True if a file was removed
        """
        full_path = self._full_path(path)
        if full_path.is_file():
            full_path.unlink()
            return True
        return False

    def snapshot(self) -> Dict[str, str]:
        """Read every working file into a path -> content mapping."""
        return {path: self.read(path) for path in self.list_files()}

    def status(
        self,
        active_branch: str,
        last_commit: Optional[str],
        tracked: Dict[str, str],
        stage: Optional[ChangeSet],
    ) -> WorkingTreeStatus:
        """
        Classify paths as staged, modified, untracked, or deleted.

        Args:
            active_branch: Name of the active branch
            last_commit: Hash of the active parent commit
            tracked: State materialized at the active parent
            stage: Pending change-set, if any
        """
        staged_changes = stage or {}
        result = WorkingTreeStatus(
            active_branch=active_branch,
            last_commit=last_commit,
            staged=list(staged_changes.keys()),
        )

        on_disk = self.list_files()
        for path in on_disk:
            if path in staged_changes:
                continue
            if path in tracked:
                if self.read(path) != tracked[path]:
                    result.modified.append(path)
            else:
                result.untracked.append(path)

        on_disk_set = set(on_disk)
        result.deleted = sorted(
            path
            for path in tracked
            if path not in on_disk_set and path not in staged_changes
        )
        return result

    def find_dirty(self, tracked: Dict[str, str]) -> List[str]:
        """
        Tracked paths whose working copy differs from ``tracked``.

        Includes tracked paths missing on disk. Untracked files never make
        the tree dirty.
        """
        dirty: List[str] = []
        for path, content in tracked.items():
            current = self.read_optional(path)
            if current != content:
                dirty.append(path)
        return sorted(dirty)

    def reconcile(self, previous: Dict[str, str], target: Dict[str, str]) -> None:
        """
        Replace the tracked working tree ``previous`` with ``target``.

        Files tracked in ``previous`` but absent from ``target`` are deleted;
        every ``target`` path is written. Untracked files are left alone.
        """
        removed = 0
        for path in previous:
            if path not in target and self.remove(path):
                removed += 1

        for path, content in target.items():
            self.write(path, content)

        logger.debug(f"Reconciled working tree: {len(target)} written, {removed} removed")
