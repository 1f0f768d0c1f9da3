"""
Repository handle for dep.

Provides git-like operations over a working directory: staging, commits,
branches, checkout, merge, reset, stash, and log/diff.
"""

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from dep.config import RepositoryConfig, config
from dep.logging import get_dep_logger, track_repository_operation

from .diff import compute_diff, render_file_diff
from .errors import (
    AlreadyExistsError,
    BranchNotFoundError,
    CommitNotFoundError,
    EmptyStageError,
    InUseError,
    InvalidNameError,
    PathNotFoundError,
    RepositoryNotFoundError,
    UncommittedChangesError,
    VersionControlError,
)
from .materialize import State, materialize, materialize_head
from .merge import MergeResult, find_common_ancestor, three_way_merge
from .objects import (
    BranchManifest,
    ChangeSet,
    Commit,
    CreateFile,
    DeleteFile,
    EditScript,
    FileEntry,
    RepositoryPointer,
    RootSnapshot,
    StashInfo,
    serialize_changes,
)
from .stash import StashStore
from .storage import LOCAL, REMOTE, Hasher, RepositoryStorage, make_hasher
from .workdir import WorkingDirectory, WorkingTreeStatus

logger = get_dep_logger("graph")

Clock = Callable[[], int]


def epoch_millis() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def validate_branch_name(name: str) -> None:
    """
    Reject names that cannot safely be used as a branch directory.

    Raises:
        InvalidNameError: If the name is empty, contains a path separator or
            control character, or consists only of dots
    """
    if not name:
        raise InvalidNameError("Branch name must not be empty.")
    if "/" in name or "\\" in name:
        raise InvalidNameError(f'Branch name "{name}" must not contain path separators.')
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in name):
        raise InvalidNameError(f'Branch name "{name!r}" contains control characters.')
    if set(name) == {"."}:
        raise InvalidNameError(f'Branch name "{name}" is reserved.')


class Repository:
    """
    Explicit handle on one repository.

    Every operation reads and rewrites the repository pointer (``dep.json``)
    under a single-writer assumption. There is no multi-process locking:
    concurrent invocations against the same repository may race, and the
    last writer wins.

    Example:
        >>> repo = Repository.init("project")
        >>> repo.add("README.md")
        >>> repo.commit("Initial commit")
    """

    def __init__(self, storage: RepositoryStorage, clock: Optional[Clock] = None):
        """
        Initialize the handle.

        Args:
            storage: Storage for the repository's control directory
            clock: Returns epoch milliseconds; used for commit and stash times
        """
        self.storage = storage
        self.clock = clock or epoch_millis
        self.workdir = WorkingDirectory(storage.work_dir, storage.control_name)
        self.stashes = StashStore(storage, self.workdir, self.clock)

    # Construction

    @staticmethod
    def _build_storage(
        path: Union[str, Path],
        settings: Optional[RepositoryConfig],
        hasher: Optional[Hasher],
    ) -> RepositoryStorage:
        settings = settings or config.repository
        return RepositoryStorage(
            Path(path),
            control_dir=settings.control_dir,
            hasher=hasher or make_hasher(settings.hash_algorithm),
            stash_prefix=settings.stash_prefix,
        )

    @classmethod
    def is_repository(
        cls, path: Union[str, Path] = ".", settings: Optional[RepositoryConfig] = None
    ) -> bool:
        """Check whether ``path`` already holds a control directory."""
        settings = settings or config.repository
        return (Path(path) / settings.control_dir).exists()

    @classmethod
    def init(
        cls,
        path: Union[str, Path] = ".",
        settings: Optional[RepositoryConfig] = None,
        hasher: Optional[Hasher] = None,
        clock: Optional[Clock] = None,
    ) -> "Repository":
        """
        Initialize a repository, capturing the current files as the root snapshot.

        Re-initializing an existing repository leaves it untouched.
        """
        settings = settings or config.repository
        storage = cls._build_storage(path, settings, hasher)
        repo = cls(storage, clock)

        if storage.base_dir.exists():
            logger.info(f"Reinitialized existing repository in {storage.base_dir}")
            return repo

        files = repo.workdir.snapshot()
        storage.save_root(
            RootSnapshot(files=[FileEntry(path=p, content=c) for p, c in files.items()])
        )
        for namespace in (LOCAL, REMOTE):
            storage.save_manifest(settings.default_branch, BranchManifest(), namespace)

        storage.save_pointer(
            RepositoryPointer(
                branch=settings.default_branch,
                parent=None,
                remote="",
                configuration={"handle": "", "personalAccessToken": ""},
            )
        )

        logger.info(f"Initialized empty repository in {storage.base_dir}")
        return repo

    @classmethod
    def open(
        cls,
        path: Union[str, Path] = ".",
        settings: Optional[RepositoryConfig] = None,
        hasher: Optional[Hasher] = None,
        clock: Optional[Clock] = None,
    ) -> "Repository":
        """
        Open an existing repository.

        Raises:
            RepositoryNotFoundError: If there is no pointer file under ``path``
        """
        storage = cls._build_storage(path, settings, hasher)
        if not storage.exists():
            raise RepositoryNotFoundError("No dep repository found.")

        repo = cls(storage, clock)
        pointer = storage.load_pointer()
        if pointer.parent and pointer.parent not in storage.load_manifest(pointer.branch).commits:
            logger.warning(
                f"Active parent {pointer.parent} is not in the manifest of {pointer.branch}"
            )
        return repo

    # State helpers

    @property
    def pointer(self) -> RepositoryPointer:
        return self.storage.load_pointer()

    @property
    def active_branch(self) -> str:
        return self.pointer.branch

    def tracked_state(self) -> State:
        """State materialized at the active parent commit."""
        pointer = self.pointer
        return materialize(self.storage, pointer.branch, pointer.parent)

    def _relative(self, path: Union[str, Path]) -> str:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.workdir.root / candidate
        try:
            relative = candidate.resolve().relative_to(self.workdir.root.resolve())
        except ValueError as e:
            raise PathNotFoundError(f"Path is outside the repository: {path}") from e
        return relative.as_posix().strip("/")

    def _switch(self, branch: str, previous: State) -> Optional[str]:
        """
        Write ``branch``'s latest state over the tracked tree ``previous``.

        Moves the active pointer to the branch's last commit.
        """
        manifest = self.storage.load_manifest(branch)
        target = materialize(self.storage, branch, manifest.head)
        self.workdir.reconcile(previous, target)

        pointer = self.storage.load_pointer()
        pointer.branch = branch
        pointer.parent = manifest.head
        self.storage.save_pointer(pointer)
        return manifest.head

    # Workflow

    def status(self) -> WorkingTreeStatus:
        """Classify working files as staged, modified, untracked, or deleted."""
        pointer = self.pointer
        tracked = materialize(self.storage, pointer.branch, pointer.parent)
        return self.workdir.status(
            active_branch=pointer.branch,
            last_commit=pointer.parent,
            tracked=tracked,
            stage=self.storage.load_stage(),
        )

    @track_repository_operation("add")
    def add(self, path: Union[str, Path]) -> List[str]:
        """
        Stage a file, or every file below a directory.

        New files are staged whole; tracked files are staged as an edit
        script against their last committed content. Files that match the
        last commit are dropped from the stage.

        Returns:
            Paths that were staged

        Raises:
            PathNotFoundError: If the path does not exist
        """
        relative = self._relative(path)
        if self.workdir.is_dir(relative):
            files = self.workdir.files_under(relative)
        elif self.workdir.exists(relative):
            files = [relative]
        else:
            raise PathNotFoundError(f"Path does not exist: {path}")

        tracked = self.tracked_state()
        stage: ChangeSet = self.storage.load_stage() or {}
        staged: List[str] = []

        for file_path in files:
            change = compute_diff(tracked.get(file_path), self.workdir.read(file_path))
            if isinstance(change, EditScript) and not change.operations:
                stage.pop(file_path, None)
                continue
            stage[file_path] = change
            staged.append(file_path)

        self.storage.save_stage(stage)
        return staged

    @track_repository_operation("rm")
    def rm(self, path: Union[str, Path]) -> List[str]:
        """
        Stage deletion of a file (or every file below a directory) and remove it.

        Returns:
            Paths marked for removal

        Raises:
            PathNotFoundError: If nothing on disk or in the last commit matches
        """
        relative = self._relative(path)
        tracked = self.tracked_state()
        prefix = relative + "/"

        targets = set(self.workdir.files_under(relative)) if self.workdir.is_dir(relative) else set()
        if self.workdir.exists(relative) or relative in tracked:
            targets.add(relative)
        targets.update(p for p in tracked if p.startswith(prefix))

        if not targets:
            raise PathNotFoundError(f"Path does not exist: {path}")

        stage: ChangeSet = self.storage.load_stage() or {}
        for file_path in sorted(targets):
            stage[file_path] = DeleteFile()
            self.workdir.remove(file_path)

        self.storage.save_stage(stage)
        return sorted(targets)

    @track_repository_operation("commit")
    def commit(self, message: str) -> Commit:
        """
        Turn the stage into a commit on the active branch.

        The hash is a digest of the serialized changes, the timestamp, and
        the message. The commit object is written before the manifest and
        the pointer, so an interruption leaves an orphaned object rather
        than a dangling reference.

        Raises:
            EmptyStageError: If nothing is staged
        """
        if not message:
            raise VersionControlError("A commit message is required.")

        stage = self.storage.load_stage()
        if not stage:
            raise EmptyStageError("Nothing to commit (stage is empty).")

        pointer = self.storage.load_pointer()
        timestamp = self.clock()
        payload = serialize_changes(stage) + str(timestamp) + message
        commit = Commit(
            hash=self.storage.hash(payload.encode("utf-8")),
            message=message,
            timestamp=timestamp,
            parent=pointer.parent,
            changes=stage,
        )

        self.storage.save_commit(pointer.branch, commit)

        manifest = self.storage.load_manifest(pointer.branch)
        manifest.commits.append(commit.hash)
        self.storage.save_manifest(pointer.branch, manifest)

        pointer.parent = commit.hash
        self.storage.save_pointer(pointer)

        self.storage.clear_stage()

        logger.info(f"[{pointer.branch} {commit.short_hash}] {message}")
        return commit

    # Changes

    def log(self) -> List[Commit]:
        """Commits of the active branch, newest first."""
        branch = self.active_branch
        commits: List[Commit] = []
        for commit_hash in reversed(self.storage.load_manifest(branch).commits):
            commit = self.storage.load_commit(branch, commit_hash)
            if commit is not None:
                commits.append(commit)
        return commits

    def diff(self) -> str:
        """Line diff of the working tree against the last commit, plus staged paths."""
        tracked = self.tracked_state()
        sections: List[str] = []

        on_disk = self.workdir.list_files()
        for path in on_disk:
            current = self.workdir.read(path)
            previous = tracked.get(path, "")
            if current != previous:
                sections.append(render_file_diff(path, previous, current))

        on_disk_set = set(on_disk)
        for path in sorted(tracked):
            if path not in on_disk_set:
                sections.append(render_file_diff(path, tracked[path], ""))

        stage = self.storage.load_stage()
        if stage:
            sections.append("--- Staged Changes ---")
            sections.extend(f"staged: {path}" for path in stage)

        return "\n".join(sections) if sections else "No changes detected."

    # Branching

    def list_branches(self) -> List[str]:
        return self.storage.list_branches()

    @track_repository_operation("create_branch")
    def create_branch(self, name: str) -> BranchManifest:
        """
        Create a branch as a copy of the active branch.

        The manifest and every referenced commit object are copied, so the
        two branches diverge independently afterwards. The manifest is also
        mirrored into the remote-tracking namespace.

        Raises:
            InvalidNameError: If the name is not usable
            AlreadyExistsError: If the branch exists
        """
        validate_branch_name(name)
        if self.storage.branch_exists(name):
            raise AlreadyExistsError(f'Branch "{name}" already exists.')

        source = self.active_branch
        manifest = self.storage.load_manifest(source)

        self.storage.branch_dir(name).mkdir(parents=True)
        for commit_hash in manifest.commits:
            if not self.storage.copy_commit(commit_hash, source, name):
                logger.warning(f"Commit object {commit_hash} missing on {source}; not copied")

        copied = BranchManifest(commits=list(manifest.commits))
        self.storage.save_manifest(name, copied)
        self.storage.save_manifest(name, copied, REMOTE)

        logger.info(f"Created branch {name} from {source} with {len(copied.commits)} commit(s)")
        return copied

    @track_repository_operation("delete_branch")
    def delete_branch(self, name: str) -> None:
        """
        Delete a branch and its remote-tracking mirror.

        Raises:
            BranchNotFoundError: If the branch does not exist
            InvalidNameError: If the name is not usable
            InUseError: If it is the active branch
        """
        validate_branch_name(name)
        if not self.storage.branch_exists(name):
            raise BranchNotFoundError(f'Branch "{name}" not found.')
        if name == self.active_branch:
            raise InUseError(f'Cannot delete the active branch "{name}".')

        self.storage.delete_branch(name, LOCAL)
        self.storage.delete_branch(name, REMOTE)
        logger.info(f"Deleted branch {name}")

    @track_repository_operation("checkout")
    def checkout(self, name: str, force: bool = False) -> Optional[str]:
        """
        Switch the working directory to another branch.

        A branch that does not exist yet is created from the active one.

        Args:
            name: Branch to switch to
            force: Overwrite uncommitted changes to tracked files

        Returns:
            Hash of the branch's last commit, or None for an empty branch

        Raises:
            InvalidNameError: If the name is not usable
            UncommittedChangesError: If not forced and a tracked file was
                modified or deleted
        """
        validate_branch_name(name)

        current = self.tracked_state()
        if not force:
            dirty = self.workdir.find_dirty(current)
            if dirty:
                raise UncommittedChangesError(
                    "Your local changes would be overwritten by checkout: "
                    + ", ".join(dirty)
                )

        if not self.storage.branch_exists(name):
            self.create_branch(name)

        head = self._switch(name, current)
        logger.info(f"Switched to branch {name}")
        return head

    @track_repository_operation("merge")
    def merge(self, target_branch: str) -> MergeResult:
        """
        Three-way merge ``target_branch`` into the active branch.

        Results go straight to the working directory and replace the stage;
        no merge commit is created. Commit once conflicts are resolved.

        Raises:
            InvalidNameError: If the name is not usable
            BranchNotFoundError: If the target branch does not exist
        """
        validate_branch_name(target_branch)
        if not self.storage.branch_exists(target_branch):
            raise BranchNotFoundError(f'Branch "{target_branch}" not found.')

        pointer = self.pointer
        active_manifest = self.storage.load_manifest(pointer.branch)
        target_manifest = self.storage.load_manifest(target_branch)

        ancestor = find_common_ancestor(active_manifest.commits, target_manifest.commits)
        base = materialize(self.storage, pointer.branch, ancestor) if ancestor else {}
        active = materialize(self.storage, pointer.branch, pointer.parent)
        target = materialize_head(self.storage, target_branch)

        result = three_way_merge(
            base, active, target, target_branch, common_ancestor=ancestor
        )

        for path, change in result.changes.items():
            if isinstance(change, CreateFile):
                self.workdir.write(path, change.content)
            else:
                self.workdir.remove(path)

        if result.changes:
            self.storage.save_stage(result.changes)

        return result

    # Caches

    @track_repository_operation("reset")
    def reset(self, commit_hash: Optional[str] = None) -> Optional[str]:
        """
        Clear the stage and optionally move the active branch back to a commit.

        The stage is cleared first, even if the commit lookup then fails.
        Moving back truncates the branch manifest after ``commit_hash``; the
        dropped commit objects stay on disk, orphaned. The working directory
        is then reconciled to the new parent.

        Raises:
            CommitNotFoundError: If the commit is not stored on the active branch
        """
        self.storage.clear_stage()

        if not commit_hash:
            return None

        pointer = self.storage.load_pointer()
        branch = pointer.branch
        if not self.storage.has_commit(branch, commit_hash):
            raise CommitNotFoundError(f"Commit {commit_hash} not found in branch {branch}.")

        previous = materialize(self.storage, branch, pointer.parent)

        pointer.parent = commit_hash
        self.storage.save_pointer(pointer)

        manifest = self.storage.load_manifest(branch)
        if commit_hash in manifest.commits:
            index = manifest.commits.index(commit_hash)
            dropped = len(manifest.commits) - index - 1
            manifest.commits = manifest.commits[: index + 1]
            self.storage.save_manifest(branch, manifest)
            logger.warning(f"Reset {branch} to {commit_hash[:7]}, dropping {dropped} commit(s)")

        return self._switch(branch, previous)

    @track_repository_operation("stash_push")
    def stash_push(self) -> Optional[str]:
        """
        Save every uncommitted change as a stash entry and clean the tree.

        Returns:
            Name of the new entry, or None if there was nothing to stash
        """
        branch = self.active_branch
        tracked = self.tracked_state()
        changes = self.stashes.collect_changes(tracked)
        if not changes:
            return None

        name = self.stashes.save(changes)
        self.storage.clear_stage()

        for path in changes:
            if path not in tracked:
                self.workdir.remove(path)

        self._switch(branch, tracked)
        return name

    @track_repository_operation("stash_pop")
    def stash_pop(self) -> Tuple[str, ChangeSet]:
        """Apply the most recent stash entry to the working tree and drop it."""
        return self.stashes.pop()

    def stash_list(self) -> List[StashInfo]:
        return self.stashes.list()

    # Setup

    def config(self, key: Optional[str] = None, value: Optional[Any] = None) -> Dict[str, Any]:
        """Read the repository configuration, setting ``key`` first if a value is given."""
        pointer = self.storage.load_pointer()
        if key and value is not None:
            pointer.configuration[key] = value
            self.storage.save_pointer(pointer)
        return pointer.configuration

    def remote(self, url: Optional[str] = None, host: Optional[str] = None) -> str:
        """
        Read or set the remote URL.

        A ``handle/repo`` slug is expanded against the configured host.
        """
        pointer = self.storage.load_pointer()
        if url:
            if "/" in url and not url.startswith("http"):
                url = f"{(host or config.remote.host).rstrip('/')}/{url}"
            pointer.remote = url
            self.storage.save_pointer(pointer)
        return pointer.remote
