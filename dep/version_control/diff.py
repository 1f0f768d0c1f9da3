"""
Diff computation for file content.

Produces single-hunk character edit scripts between two versions of a
file and applies them back. Also renders line diffs of the working tree
for display.
"""

import difflib
from typing import Iterable, List, Optional

from .objects import (
    ChangeEntry,
    CreateFile,
    Delete,
    DeleteFile,
    EditOperation,
    EditScript,
    Insert,
)


def compute_diff(previous: Optional[str], current: str) -> ChangeEntry:
    """
    Compute the change that turns ``previous`` into ``current``.

    Finds the longest common prefix and, independently, the longest common
    suffix (never overlapping the prefix). The differing middle becomes at
    most one ``Delete`` followed by at most one ``Insert``. Two disjoint
    edits collapse into one hunk spanning both.

    Args:
        previous: Prior content, or None if the path is not tracked
        current: New content

    Returns:
        ``CreateFile`` when there is no prior version, otherwise an
        ``EditScript`` (empty when the contents are equal)

    Example:
        >>> compute_diff("hello world", "hello there world")
        EditScript(operations=(Insert(position=6, content='there '),))
    """
    if previous is None:
        return CreateFile(content=current)

    prev_len = len(previous)
    curr_len = len(current)
    shortest = min(prev_len, curr_len)

    prefix = 0
    while prefix < shortest and previous[prefix] == current[prefix]:
        prefix += 1

    suffix = 0
    while (
        suffix < shortest - prefix
        and previous[prev_len - 1 - suffix] == current[curr_len - 1 - suffix]
    ):
        suffix += 1

    operations: List[EditOperation] = []

    deleted = prev_len - prefix - suffix
    if deleted > 0:
        operations.append(Delete(position=prefix, length=deleted))

    inserted = current[prefix : curr_len - suffix]
    if inserted:
        operations.append(Insert(position=prefix, content=inserted))

    return EditScript(tuple(operations))


def apply_operations(content: str, operations: Iterable[EditOperation]) -> str:
    """Apply edit operations left-to-right to ``content``."""
    for op in operations:
        if isinstance(op, Insert):
            content = content[: op.position] + op.content + content[op.position :]
        elif isinstance(op, Delete):
            content = content[: op.position] + content[op.position + op.length :]
        else:
            raise TypeError(f"Not an edit operation: {op!r}")
    return content


def apply_diff(content: Optional[str], change: ChangeEntry) -> Optional[str]:
    """
    Apply a change entry to a file's content.

    Args:
        content: Current content, or None if the file does not exist
        change: Change entry to apply

    Returns:
        The new content, or None if the change deletes the file
    """
    if isinstance(change, CreateFile):
        return change.content
    if isinstance(change, DeleteFile):
        return None
    if isinstance(change, EditScript):
        return apply_operations(content if content is not None else "", change.operations)
    raise TypeError(f"Not a change entry: {change!r}")


def render_file_diff(path: str, previous: str, current: str) -> str:
    """
    Render a unified line diff of one file for display.

    Args:
        path: Repository-relative path
        previous: Content at the last commit ("" if untracked)
        current: Content in the working directory

    Returns:
        Diff text with a ``diff --dep`` header
    """
    lines = [f"diff --dep a/{path} b/{path}"]
    for line in difflib.unified_diff(
        previous.splitlines(),
        current.splitlines(),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        lineterm="",
    ):
        lines.append(line)
    return "\n".join(lines) + "\n"
