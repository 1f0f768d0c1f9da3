"""
Three-way merge between branches.

Merges at file granularity: when both sides changed a file differently,
the whole file is replaced by a conflict block.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from dep.logging import get_dep_logger

from .objects import ChangeSet, CreateFile, DeleteFile

logger = get_dep_logger("merge")

CONFLICT_START = "<<<<<<< active"
CONFLICT_SEPARATOR = "======="
CONFLICT_END = ">>>>>>>"


@dataclass
class MergeResult:
    """Outcome of a three-way merge, to be written to the stage and disk."""

    target_branch: str
    common_ancestor: Optional[str]
    changes: ChangeSet = field(default_factory=dict)
    resolved: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0

    def summary(self) -> str:
        """One-line description of the merge."""
        if not self.changes:
            return f"Already up to date with {self.target_branch}."
        text = f"Merged {self.target_branch}: {len(self.resolved)} file(s) updated"
        if self.conflicts:
            text += f", {len(self.conflicts)} conflict(s) to resolve before committing"
        return text + "."


def find_common_ancestor(
    active_commits: Sequence[str], target_commits: Sequence[str]
) -> Optional[str]:
    """
    Most recent hash of the active manifest that is also in the target's.

    Scans ``active_commits`` newest first. Returns None when the branches
    share no history.
    """
    target_set = set(target_commits)
    for commit_hash in reversed(active_commits):
        if commit_hash in target_set:
            return commit_hash
    return None


def conflict_block(active: Optional[str], target: Optional[str], target_branch: str) -> str:
    """Render both sides of a conflicting file; a missing side renders empty."""
    return (
        f"{CONFLICT_START}\n{active or ''}\n"
        f"{CONFLICT_SEPARATOR}\n{target or ''}\n"
        f"{CONFLICT_END} {target_branch}"
    )


def three_way_merge(
    base: Dict[str, str],
    active: Dict[str, str],
    target: Dict[str, str],
    target_branch: str,
    common_ancestor: Optional[str] = None,
) -> MergeResult:
    """
    Merge ``target`` into ``active`` relative to ``base``.

    For each path in either side:
    - identical on both sides: nothing to do
    - only the target changed: take the target version
    - both changed, differently: conflict block
    - only the active side changed: keep it (already on disk)

    Args:
        base: State at the common ancestor (empty when there is none)
        active: State at the active branch's parent commit
        target: State at the target branch's last commit
        target_branch: Name shown in conflict markers

    Returns:
        MergeResult with the change-set to stage
    """
    result = MergeResult(target_branch=target_branch, common_ancestor=common_ancestor)

    for path in dict.fromkeys([*active.keys(), *target.keys()]):
        base_content = base.get(path)
        active_content = active.get(path)
        target_content = target.get(path)

        if active_content == target_content:
            continue

        if base_content == active_content:
            if target_content is None:
                result.changes[path] = DeleteFile()
            else:
                result.changes[path] = CreateFile(content=target_content)
            result.resolved.append(path)
        elif base_content != target_content:
            result.changes[path] = CreateFile(
                content=conflict_block(active_content, target_content, target_branch)
            )
            result.conflicts.append(path)

    logger.info(
        f"Merge of {target_branch}: {len(result.resolved)} resolved, "
        f"{len(result.conflicts)} conflicting"
    )
    return result
