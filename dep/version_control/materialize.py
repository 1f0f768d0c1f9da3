"""
State materialization.

Replays a branch's commits over the root snapshot to reconstruct the
exact path -> content mapping at a point in history.
"""

from typing import Dict, Optional

from dep.logging import get_dep_logger, performance_monitor

from .diff import apply_diff
from .objects import ChangeSet
from .storage import LOCAL, RepositoryStorage

State = Dict[str, str]

logger = get_dep_logger("materializer")


def apply_change_set(state: State, changes: ChangeSet) -> State:
    """
    Apply a change-set to a state in place.

    Args:
        state: Path -> content mapping to mutate
        changes: Change-set to apply

    Returns:
        The same mapping, for chaining
    """
    for path, change in changes.items():
        content = apply_diff(state.get(path), change)
        if content is None:
            state.pop(path, None)
        else:
            state[path] = content
    return state


@performance_monitor(threshold_ms=500)
def materialize(
    storage: RepositoryStorage,
    branch: str,
    target_hash: Optional[str],
    namespace: str = LOCAL,
) -> State:
    """
    Reconstruct the file tree of ``branch`` as of ``target_hash``.

    Starts from the root snapshot and applies commits in manifest order,
    stopping right after the commit whose hash is ``target_hash``. A null
    target means no commits are applied. A target that is not in the
    manifest replays every commit.

    Commit objects missing from storage are skipped, so the result may not
    reflect every manifest entry when a remote fetch was partial.

    Args:
        storage: Repository storage
        branch: Branch whose manifest is replayed
        target_hash: Last commit to apply, or None for the root snapshot
        namespace: ``local`` or ``remote`` history

    Returns:
        Mapping of repository-relative path to content
    """
    state: State = storage.load_root().as_state()

    if target_hash is None:
        return state

    manifest = storage.load_manifest(branch, namespace)

    for commit_hash in manifest.commits:
        commit = storage.load_commit(branch, commit_hash, namespace)
        if commit is None:
            logger.warning(f"Skipping missing commit object {commit_hash} on {branch}")
        else:
            apply_change_set(state, commit.changes)

        if commit_hash == target_hash:
            break

    return state


def materialize_head(
    storage: RepositoryStorage, branch: str, namespace: str = LOCAL
) -> State:
    """Reconstruct the state at the last commit of ``branch``."""
    return materialize(storage, branch, storage.load_manifest(branch, namespace).head, namespace)
