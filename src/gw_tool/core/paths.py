"""Path resolution helpers for worktree names."""

import os
from pathlib import Path


def resolve_worktree_path(root: Path, name: str) -> Path:
    """
    Resolve a worktree name relative to the repository root.

    Handles both:
    - Relative worktree names: "feat-branch" -> "<root>/feat-branch"
    - Absolute paths, which are normalized and returned unchanged

    Args:
        root: Absolute path to the repository root.
        name: Worktree name (relative) or full path (absolute).

    Returns:
        Absolute, normalized path to the worktree.
    """
    candidate = Path(name).expanduser()
    if candidate.is_absolute():
        return Path(os.path.normpath(candidate))
    return Path(os.path.normpath(Path(root) / candidate))


def is_path_inside(child: Path, parent: Path) -> bool:
    """Check if child is parent itself or somewhere below it."""
    child = Path(child).resolve()
    parent = Path(parent).resolve()
    return child == parent or parent in child.parents
