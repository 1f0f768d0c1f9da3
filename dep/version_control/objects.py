"""
Object model for version control.

Defines the serializable records stored under the control directory:
change entries and change-sets, commits, the root snapshot, branch
manifests, and the repository pointer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
import json

from .errors import CorruptedObjectError


class ChangeType(str, Enum):
    """Kinds of change entry in a change-set."""

    CREATE_FILE = "createFile"
    DELETE_FILE = "deleteFile"
    EDIT = "edit"


class OperationType(str, Enum):
    """Kinds of character-level edit operation."""

    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class Insert:
    """Splice ``content`` into the file at character offset ``position``."""

    position: int
    content: str

    def __post_init__(self) -> None:
        if self.position < 0:
            raise ValueError(f"Insert position must be >= 0, got {self.position}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": OperationType.INSERT.value,
            "position": self.position,
            "content": self.content,
        }


@dataclass(frozen=True)
class Delete:
    """Remove ``length`` characters starting at character offset ``position``."""

    position: int
    length: int

    def __post_init__(self) -> None:
        if self.position < 0:
            raise ValueError(f"Delete position must be >= 0, got {self.position}")
        if self.length < 0:
            raise ValueError(f"Delete length must be >= 0, got {self.length}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": OperationType.DELETE.value,
            "position": self.position,
            "length": self.length,
        }


EditOperation = Union[Insert, Delete]


@dataclass(frozen=True)
class CreateFile:
    """Set the file to exactly ``content``."""

    content: str

    @property
    def change_type(self) -> ChangeType:
        return ChangeType.CREATE_FILE

    def to_dict(self) -> Dict[str, Any]:
        return {"type": ChangeType.CREATE_FILE.value, "content": self.content}


@dataclass(frozen=True)
class DeleteFile:
    """Remove the file."""

    @property
    def change_type(self) -> ChangeType:
        return ChangeType.DELETE_FILE

    def to_dict(self) -> Dict[str, Any]:
        return {"type": ChangeType.DELETE_FILE.value}


@dataclass(frozen=True)
class EditScript:
    """
    Ordered character-offset operations.

    Operations are applied left-to-right against the file's prior
    content. Serialized as a bare JSON list.
    """

    operations: Tuple[EditOperation, ...] = ()

    def __post_init__(self) -> None:
        # Accept any iterable but store an immutable tuple
        object.__setattr__(self, "operations", tuple(self.operations))
        for op in self.operations:
            if not isinstance(op, (Insert, Delete)):
                raise TypeError(f"Not an edit operation: {op!r}")

    @property
    def change_type(self) -> ChangeType:
        return ChangeType.EDIT

    def to_dict(self) -> List[Dict[str, Any]]:
        return [op.to_dict() for op in self.operations]


ChangeEntry = Union[CreateFile, DeleteFile, EditScript]
ChangeSet = Dict[str, ChangeEntry]


def operation_from_dict(data: Any) -> EditOperation:
    """Parse one serialized edit operation."""
    if not isinstance(data, dict):
        raise CorruptedObjectError(f"Edit operation must be an object: {data!r}")

    try:
        if data.get("type") == OperationType.INSERT.value:
            return Insert(position=int(data["position"]), content=data["content"])
        if data.get("type") == OperationType.DELETE.value:
            return Delete(position=int(data["position"]), length=int(data["length"]))
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptedObjectError(f"Malformed edit operation {data!r}: {e}") from e

    raise CorruptedObjectError(f"Unknown edit operation type: {data.get('type')!r}")


def change_entry_from_dict(data: Any) -> ChangeEntry:
    """
    Parse a serialized change entry.

    A JSON list is an edit script; an object is dispatched on its ``type``.
    ``update`` is read as a legacy spelling of ``createFile``.
    """
    if isinstance(data, list):
        return EditScript(tuple(operation_from_dict(op) for op in data))

    if not isinstance(data, dict):
        raise CorruptedObjectError(f"Change entry must be a list or object: {data!r}")

    change_type = data.get("type")
    if change_type in (ChangeType.CREATE_FILE.value, "update"):
        content = data.get("content")
        return CreateFile(content=content if content is not None else "")
    if change_type == ChangeType.DELETE_FILE.value:
        return DeleteFile()

    raise CorruptedObjectError(f"Unknown change entry type: {change_type!r}")


def change_set_to_dict(changes: ChangeSet) -> Dict[str, Any]:
    """Serialize a change-set, preserving path insertion order."""
    return {path: entry.to_dict() for path, entry in changes.items()}


def change_set_from_dict(data: Dict[str, Any]) -> ChangeSet:
    """Parse a serialized change-set."""
    if not isinstance(data, dict):
        raise CorruptedObjectError(f"Change-set must be an object: {data!r}")
    return {path: change_entry_from_dict(entry) for path, entry in data.items()}


def serialize_changes(changes: ChangeSet) -> str:
    """
    Compact JSON rendering of a change-set.

    This is the exact text fed to the commit digest, so separators and
    key order must stay stable.
    """
    return json.dumps(
        change_set_to_dict(changes), separators=(",", ":"), ensure_ascii=False
    )


@dataclass
class Commit:
    """
    An immutable, content-addressed record of one change-set.

    ``parent`` is informational only: branch membership comes from the
    branch manifest, never from walking parent links.
    """

    hash: str
    message: str
    timestamp: int  # epoch milliseconds
    parent: Optional[str]
    changes: ChangeSet = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert commit to dictionary for serialization."""
        return {
            "hash": self.hash,
            "message": self.message,
            "timestamp": self.timestamp,
            "parent": self.parent,
            "changes": change_set_to_dict(self.changes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Commit":
        """Create commit from dictionary."""
        try:
            return cls(
                hash=data["hash"],
                message=data["message"],
                timestamp=int(data["timestamp"]),
                parent=data.get("parent"),
                changes=change_set_from_dict(data.get("changes", {})),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptedObjectError(f"Malformed commit object: {e}") from e

    def to_json(self) -> str:
        """Convert commit to JSON string."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "Commit":
        """Create commit from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


@dataclass
class FileEntry:
    """A single file captured in the root snapshot."""

    path: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "content": self.content}


@dataclass
class RootSnapshot:
    """
    File tree captured at repository initialization.

    Immutable after creation; the base layer every replay starts from.
    """

    files: List[FileEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"files": [f.to_dict() for f in self.files]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RootSnapshot":
        try:
            return cls(
                files=[
                    FileEntry(path=f["path"], content=f["content"])
                    for f in data.get("files", [])
                ]
            )
        except (KeyError, TypeError) as e:
            raise CorruptedObjectError(f"Malformed root manifest: {e}") from e

    def as_state(self) -> Dict[str, str]:
        """Return the snapshot as a path -> content mapping."""
        return {f.path: f.content for f in self.files}


@dataclass
class BranchManifest:
    """Ordered, append-only list of commit hashes (oldest first)."""

    commits: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"commits": list(self.commits)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BranchManifest":
        commits = data.get("commits", []) if isinstance(data, dict) else None
        if not isinstance(commits, list):
            raise CorruptedObjectError(f"Malformed branch manifest: {data!r}")
        return cls(commits=list(commits))

    @property
    def head(self) -> Optional[str]:
        """Last commit hash, or None for an empty branch."""
        return self.commits[-1] if self.commits else None


@dataclass
class RepositoryPointer:
    """
    Contents of ``dep.json``.

    If ``parent`` is set it must appear in ``branch``'s manifest.
    """

    branch: str
    parent: Optional[str] = None
    remote: str = ""
    configuration: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active": {"branch": self.branch, "parent": self.parent},
            "remote": self.remote,
            "configuration": self.configuration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepositoryPointer":
        try:
            active = data["active"]
            return cls(
                branch=active["branch"],
                parent=active.get("parent"),
                remote=data.get("remote", ""),
                configuration=data.get("configuration", {}),
            )
        except (KeyError, TypeError) as e:
            raise CorruptedObjectError(f"Malformed repository pointer: {e}") from e


@dataclass
class StashInfo:
    """Listing record for one stash entry."""

    id: str  # stash@{N}, most recent = 0
    name: str
    timestamp: int  # epoch milliseconds
    date: str
