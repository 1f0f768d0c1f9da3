"""
Storage backend for version control.

Handles persistence of the repository pointer, root snapshot, branch
manifests, commit objects, the stage, and stash entries.
"""

import hashlib
import json
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional

from .errors import CorruptedObjectError
from .objects import (
    BranchManifest,
    ChangeSet,
    Commit,
    RepositoryPointer,
    RootSnapshot,
    change_set_from_dict,
    change_set_to_dict,
)

Hasher = Callable[[bytes], str]

LOCAL = "local"
REMOTE = "remote"


def make_hasher(algorithm: str = "sha1") -> Hasher:
    """
    Build a hash function over bytes returning a hex identifier.

    Args:
        algorithm: Any name accepted by ``hashlib.new``

    Raises:
        ValueError: If the algorithm is unknown
    """
    hashlib.new(algorithm)  # fail fast on unknown names

    def _hash(data: bytes) -> str:
        return hashlib.new(algorithm, data).hexdigest()

    return _hash


class RepositoryStorage:
    """
    File-based storage for a repository.

    Layout under the control directory:
    - dep.json                               (repository pointer)
    - root/manifest.json                     (root snapshot)
    - history/local/<branch>/manifest.json   (commit hashes, oldest first)
    - history/local/<branch>/<hash>.json     (commit objects)
    - history/remote/<branch>/...            (remote-tracking mirror)
    - stage.json                             (pending change-set)
    - cache/stash_<epoch-ms>.json            (stash entries)

    No locks are taken. Each file is replaced atomically, but there is no
    transaction spanning several files.
    """

    def __init__(
        self,
        work_dir: Path,
        control_dir: str = ".dep",
        hasher: Optional[Hasher] = None,
        stash_prefix: str = "stash_",
    ):
        """
        Initialize storage.

        Args:
            work_dir: Root of the working directory
            control_dir: Name of the control directory inside ``work_dir``
            hasher: Function used to derive commit identities
            stash_prefix: File name prefix for stash entries
        """
        self.work_dir = Path(work_dir)
        self.control_name = control_dir
        self.base_dir = self.work_dir / control_dir
        self.pointer_file = self.base_dir / "dep.json"
        self.root_dir = self.base_dir / "root"
        self.root_manifest_file = self.root_dir / "manifest.json"
        self.history_dir = self.base_dir / "history"
        self.stage_file = self.base_dir / "stage.json"
        self.cache_dir = self.base_dir / "cache"
        self.stash_prefix = stash_prefix
        self.hasher = hasher or make_hasher("sha1")

    # JSON primitives

    def _read_json(self, path: Path) -> Any:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise CorruptedObjectError(f"Could not parse {path}: {e}") from e

    @contextmanager
    def _atomic_write(self, filepath: Path) -> Iterator[Any]:
        """Write to a temp file beside ``filepath`` and rename it into place."""
        filepath.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(
            dir=filepath.parent, prefix=f".{filepath.name}.", suffix=".tmp"
        )

        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                yield f

            os.replace(temp_path, filepath)

        except Exception:
            try:
                os.unlink(temp_path)
            except FileNotFoundError:
                pass
            raise

    def _write_json(self, path: Path, data: Any) -> None:
        with self._atomic_write(path) as f:
            f.write(json.dumps(data, indent=2, ensure_ascii=False))

    def hash(self, data: bytes) -> str:
        """Derive an identifier for ``data`` with the configured hasher."""
        return self.hasher(data)

    # Repository pointer

    def exists(self) -> bool:
        """Check whether the repository pointer file exists."""
        return self.pointer_file.is_file()

    def load_pointer(self) -> RepositoryPointer:
        return RepositoryPointer.from_dict(self._read_json(self.pointer_file))

    def save_pointer(self, pointer: RepositoryPointer) -> None:
        self._write_json(self.pointer_file, pointer.to_dict())

    # Root snapshot

    def load_root(self) -> RootSnapshot:
        if not self.root_manifest_file.exists():
            return RootSnapshot()
        return RootSnapshot.from_dict(self._read_json(self.root_manifest_file))

    def save_root(self, snapshot: RootSnapshot) -> None:
        self._write_json(self.root_manifest_file, snapshot.to_dict())

    # Branches

    def branch_dir(self, branch: str, namespace: str = LOCAL) -> Path:
        return self.history_dir / namespace / branch

    def branch_exists(self, branch: str, namespace: str = LOCAL) -> bool:
        return self.branch_dir(branch, namespace).is_dir()

    def list_branches(self, namespace: str = LOCAL) -> List[str]:
        """
        List branch names.

        Hidden entries (OS artifacts such as ``.DS_Store``) and plain files
        are skipped.
        """
        namespace_dir = self.history_dir / namespace
        if not namespace_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in namespace_dir.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def delete_branch(self, branch: str, namespace: str = LOCAL) -> bool:
        """
        Remove a branch directory.

        Returns:
            True if deleted, False if it didn't exist
        """
        branch_dir = self.branch_dir(branch, namespace)
        if branch_dir.is_dir():
            shutil.rmtree(branch_dir)
            return True
        return False

    def load_manifest(self, branch: str, namespace: str = LOCAL) -> BranchManifest:
        """Load a branch manifest; a missing manifest reads as empty."""
        manifest_file = self.branch_dir(branch, namespace) / "manifest.json"
        if not manifest_file.exists():
            return BranchManifest()
        return BranchManifest.from_dict(self._read_json(manifest_file))

    def save_manifest(
        self, branch: str, manifest: BranchManifest, namespace: str = LOCAL
    ) -> None:
        self._write_json(
            self.branch_dir(branch, namespace) / "manifest.json", manifest.to_dict()
        )

    # Commits

    def commit_file(self, branch: str, commit_hash: str, namespace: str = LOCAL) -> Path:
        return self.branch_dir(branch, namespace) / f"{commit_hash}.json"

    def has_commit(self, branch: str, commit_hash: str, namespace: str = LOCAL) -> bool:
        return self.commit_file(branch, commit_hash, namespace).is_file()

    def load_commit(
        self, branch: str, commit_hash: str, namespace: str = LOCAL
    ) -> Optional[Commit]:
        """
        Load a commit object.

        Returns:
            Commit if found, None otherwise
        """
        commit_file = self.commit_file(branch, commit_hash, namespace)
        if not commit_file.exists():
            return None
        return Commit.from_dict(self._read_json(commit_file))

    def save_commit(self, branch: str, commit: Commit, namespace: str = LOCAL) -> None:
        self._write_json(self.commit_file(branch, commit.hash, namespace), commit.to_dict())

    def copy_commit(
        self,
        commit_hash: str,
        from_branch: str,
        to_branch: str,
        from_namespace: str = LOCAL,
        to_namespace: str = LOCAL,
    ) -> bool:
        """
        Copy a commit object file between branch directories.

        Returns:
            True if copied, False if the source object is missing
        """
        source = self.commit_file(from_branch, commit_hash, from_namespace)
        if not source.is_file():
            return False
        target = self.commit_file(to_branch, commit_hash, to_namespace)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        return True

    # Stage

    def load_stage(self) -> Optional[ChangeSet]:
        """Load the stage, or None if nothing is staged."""
        if not self.stage_file.exists():
            return None
        data = self._read_json(self.stage_file)
        return change_set_from_dict(data.get("changes", {}))

    def save_stage(self, changes: ChangeSet) -> None:
        self._write_json(self.stage_file, {"changes": change_set_to_dict(changes)})

    def clear_stage(self) -> bool:
        """
        Delete the stage file.

        Returns:
            True if a stage existed
        """
        if self.stage_file.exists():
            self.stage_file.unlink()
            return True
        return False

    # Stash entries

    def stash_file(self, name: str) -> Path:
        return self.cache_dir / f"{name}.json"

    def list_stashes(self) -> List[str]:
        """Stash entry names, oldest first (names embed epoch milliseconds)."""
        if not self.cache_dir.is_dir():
            return []
        return sorted(
            entry.stem
            for entry in self.cache_dir.iterdir()
            if entry.is_file()
            and entry.suffix == ".json"
            and entry.stem.startswith(self.stash_prefix)
            and entry.stem[len(self.stash_prefix) :].isdigit()
        )

    def load_stash(self, name: str) -> ChangeSet:
        data = self._read_json(self.stash_file(name))
        return change_set_from_dict(data.get("changes", {}))

    def save_stash(self, name: str, changes: ChangeSet) -> None:
        self._write_json(self.stash_file(name), {"changes": change_set_to_dict(changes)})

    def delete_stash(self, name: str) -> None:
        self.stash_file(name).unlink()
