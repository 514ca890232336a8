"""
Pydantic models for gw.

This package contains data models for:
- Worktree information as reported by git
- Auto-clean candidates
- Maintenance results (cleanup, file copy, update)
"""

from gw_tool.models.maintenance import CleanupReport, CopyResult, UpdateResult
from gw_tool.models.worktree_info import CleanableWorktree, WorktreeInfo

__all__ = [
    "CleanableWorktree",
    "CleanupReport",
    "CopyResult",
    "UpdateResult",
    "WorktreeInfo",
]
