"""
Exceptions raised by the version control core.

All errors are raised synchronously and never retried internally; the
command-line layer reports them and exits with a non-zero status.
"""


class VersionControlError(Exception):
    """Base exception for version control errors."""

    pass


class RepositoryNotFoundError(VersionControlError):
    """Raised when no repository pointer file exists at the expected location."""

    pass


class InvalidNameError(VersionControlError):
    """Raised when a branch name fails validation."""

    pass


class AlreadyExistsError(VersionControlError):
    """Raised when creating something that already exists."""

    pass


class NotFoundError(VersionControlError):
    """Raised when a branch, commit, or stash entry is missing."""

    pass


class BranchNotFoundError(NotFoundError):
    """Raised when a branch does not exist."""

    pass


class CommitNotFoundError(NotFoundError):
    """Raised when a commit is not stored under the active branch."""

    pass


class StashNotFoundError(NotFoundError):
    """Raised when there is no stash entry to pop."""

    pass


class InUseError(VersionControlError):
    """Raised when deleting the active branch."""

    pass


class EmptyStageError(VersionControlError):
    """Raised when committing with nothing staged."""

    pass


class UncommittedChangesError(VersionControlError):
    """Raised by a non-forced checkout over a dirty working directory."""

    pass


class PathNotFoundError(VersionControlError):
    """Raised when an add/rm target does not exist."""

    pass


class CorruptedObjectError(VersionControlError):
    """Raised when a stored JSON object cannot be parsed or has the wrong shape."""

    pass


class RemoteError(VersionControlError):
    """Raised when remote synchronization fails or is not configured."""

    pass
