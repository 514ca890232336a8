"""
Pydantic models for maintenance operations.

This module provides data models for:
- Manual cleanup of stale worktrees
- Copying files between worktrees
- Updating a worktree from the default branch
"""

from datetime import datetime

from pydantic import BaseModel, Field


class StaleWorktree(BaseModel):
    """A cleanup candidate with its safety verdict."""

    path: str
    branch: str = ""
    age_days: int = 0
    has_uncommitted: bool = False
    has_unpushed: bool = False
    can_clean: bool = True
    reason: str | None = None

    @property
    def display_name(self) -> str:
        return self.branch or self.path


class CleanupReport(BaseModel):
    """Report generated after a cleanup operation."""

    timestamp: datetime = Field(default_factory=datetime.now)
    dry_run: bool
    force: bool = False
    stale_threshold_days: int
    worktrees_scanned: int = 0
    stale_worktrees_found: int = 0
    worktrees_cleaned: int = 0
    worktrees_skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    cleaned_paths: list[str] = Field(default_factory=list)
    skipped_paths: list[str] = Field(default_factory=list)


class CopyResult(BaseModel):
    """Result of copying a single file or directory between worktrees."""

    success: bool
    message: str
    path: str


class UpdateResult(BaseModel):
    """Outcome of merging or rebasing the default branch into a worktree."""

    success: bool
    up_to_date: bool = False
    conflicted: bool = False
    message: str = ""
    files_changed: int = 0
