"""
Version control core for dep.

Commit/branch graph, character-level diff engine, state replay, three-way
merge, stash, and remote synchronization.
"""

from .objects import (
    ChangeType,
    OperationType,
    Insert,
    Delete,
    CreateFile,
    DeleteFile,
    EditScript,
    ChangeEntry,
    ChangeSet,
    Commit,
    FileEntry,
    RootSnapshot,
    BranchManifest,
    RepositoryPointer,
    StashInfo,
    change_entry_from_dict,
    change_set_from_dict,
    change_set_to_dict,
    serialize_changes,
)

from .errors import (
    VersionControlError,
    RepositoryNotFoundError,
    InvalidNameError,
    AlreadyExistsError,
    NotFoundError,
    BranchNotFoundError,
    CommitNotFoundError,
    StashNotFoundError,
    InUseError,
    EmptyStageError,
    UncommittedChangesError,
    PathNotFoundError,
    CorruptedObjectError,
    RemoteError,
)

from .diff import compute_diff, apply_diff, apply_operations, render_file_diff
from .storage import RepositoryStorage, Hasher, make_hasher
from .materialize import materialize, materialize_head, apply_change_set
from .workdir import WorkingDirectory, WorkingTreeStatus
from .merge import MergeResult, find_common_ancestor, three_way_merge
from .stash import StashStore
from .repository import Repository, validate_branch_name
from .remote import Transport, HttpTransport, RemoteSync, parse_slug

__all__ = [
    # Objects
    "ChangeType",
    "OperationType",
    "Insert",
    "Delete",
    "CreateFile",
    "DeleteFile",
    "EditScript",
    "ChangeEntry",
    "ChangeSet",
    "Commit",
    "FileEntry",
    "RootSnapshot",
    "BranchManifest",
    "RepositoryPointer",
    "StashInfo",
    "change_entry_from_dict",
    "change_set_from_dict",
    "change_set_to_dict",
    "serialize_changes",
    # Errors
    "VersionControlError",
    "RepositoryNotFoundError",
    "InvalidNameError",
    "AlreadyExistsError",
    "NotFoundError",
    "BranchNotFoundError",
    "CommitNotFoundError",
    "StashNotFoundError",
    "InUseError",
    "EmptyStageError",
    "UncommittedChangesError",
    "PathNotFoundError",
    "CorruptedObjectError",
    "RemoteError",
    # Diff
    "compute_diff",
    "apply_diff",
    "apply_operations",
    "render_file_diff",
    # Storage and replay
    "RepositoryStorage",
    "Hasher",
    "make_hasher",
    "materialize",
    "materialize_head",
    "apply_change_set",
    # Working tree
    "WorkingDirectory",
    "WorkingTreeStatus",
    # Merge and stash
    "MergeResult",
    "find_common_ancestor",
    "three_way_merge",
    "StashStore",
    # Repository
    "Repository",
    "validate_branch_name",
    # Remote
    "Transport",
    "HttpTransport",
    "RemoteSync",
    "parse_slug",
]
