"""
Core modules for gw.

This package contains the core business logic for:
- Worktree management through git
- Automatic cleanup of stale worktrees
- Manual cleanup
- Copying files between worktrees
- Lifecycle hooks
"""

from gw_tool.core.auto_clean import (
    AutoCleanEngine,
    run_auto_clean,
    start_background_auto_clean,
)
from gw_tool.core.cleanup import CleanupConfig, CleanupService
from gw_tool.core.worktree import (
    NotAGitRepositoryError,
    WorktreeAlreadyExistsError,
    WorktreeError,
    WorktreeManager,
    WorktreeNotFoundError,
)

__all__ = [
    "AutoCleanEngine",
    "CleanupConfig",
    "CleanupService",
    "NotAGitRepositoryError",
    "WorktreeAlreadyExistsError",
    "WorktreeError",
    "WorktreeManager",
    "WorktreeNotFoundError",
    "run_auto_clean",
    "start_background_auto_clean",
]
