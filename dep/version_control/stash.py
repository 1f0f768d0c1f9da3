"""
Stash entries: out-of-band snapshots of uncommitted working-tree changes.

Each entry is a timestamp-named change-set holding the full delta between
the working directory and the branch's last known state.
"""

from datetime import datetime
from typing import Callable, Dict, List, Tuple

from dep.logging import get_dep_logger

from .diff import apply_diff, compute_diff
from .errors import StashNotFoundError
from .objects import ChangeSet, DeleteFile, StashInfo
from .storage import RepositoryStorage
from .workdir import WorkingDirectory

logger = get_dep_logger("stash")


class StashStore:
    """Creates, applies, and lists stash entries for one repository."""

    def __init__(
        self,
        storage: RepositoryStorage,
        workdir: WorkingDirectory,
        clock: Callable[[], int],
    ):
        """
        Args:
            storage: Repository storage holding the ``cache`` directory
            workdir: Working tree the entries are captured from and applied to
            clock: Returns the current time in epoch milliseconds
        """
        self.storage = storage
        self.workdir = workdir
        self.clock = clock

    def collect_changes(self, tracked: Dict[str, str]) -> ChangeSet:
        """
        Diff the working tree against ``tracked``.

        Every on-disk file that differs (or is untracked) gets an entry from
        the diff engine; tracked paths missing on disk get ``DeleteFile``.
        """
        changes: ChangeSet = {}
        on_disk = self.workdir.list_files()

        for path in on_disk:
            previous = tracked.get(path)
            current = self.workdir.read(path)
            if previous == current:
                continue
            changes[path] = compute_diff(previous, current)

        on_disk_set = set(on_disk)
        for path in tracked:
            if path not in on_disk_set:
                changes[path] = DeleteFile()

        return changes

    def save(self, changes: ChangeSet) -> str:
        """
        Persist a new entry named after the current time.

        Returns:
            The entry name (``stash_<epoch-ms>``)
        """
        timestamp = self.clock()
        existing = set(self.storage.list_stashes())
        while f"{self.storage.stash_prefix}{timestamp}" in existing:
            timestamp += 1

        name = f"{self.storage.stash_prefix}{timestamp}"
        self.storage.save_stash(name, changes)
        logger.info(f"Saved {len(changes)} change(s) in {name}")
        return name

    def pop(self) -> Tuple[str, ChangeSet]:
        """
        Apply the most recent entry to the working tree and delete it.

        Edit scripts are applied against the file's current on-disk content.

        Returns:
            The entry name and the change-set that was applied

        Raises:
            StashNotFoundError: If there are no entries
        """
        names = self.storage.list_stashes()
        if not names:
            raise StashNotFoundError("No stashes found.")

        name = names[-1]
        changes = self.storage.load_stash(name)

        for path, change in changes.items():
            content = apply_diff(self.workdir.read_optional(path), change)
            if content is None:
                self.workdir.remove(path)
            else:
                self.workdir.write(path, content)

        self.storage.delete_stash(name)
        logger.info(f"Applied and dropped {name}")
        return name, changes

    def list(self) -> List[StashInfo]:
        """Entries oldest first; ``stash@{0}`` is the most recent."""
        names = self.storage.list_stashes()
        entries: List[StashInfo] = []
        prefix_len = len(self.storage.stash_prefix)

        for index, name in enumerate(names):
            timestamp = int(name[prefix_len:])
            entries.append(
                StashInfo(
                    id=f"stash@{{{len(names) - 1 - index}}}",
                    name=name,
                    timestamp=timestamp,
                    date=datetime.fromtimestamp(timestamp / 1000).strftime(
                        "%Y-%m-%d %H:%M:%S"
                    ),
                )
            )

        return entries
