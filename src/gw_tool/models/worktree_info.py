"""Pydantic models for worktree information."""

from pathlib import Path

from pydantic import BaseModel, Field


class WorktreeInfo(BaseModel):
    """Information about a git worktree."""

    path: Path = Field(description="Absolute path to the worktree directory")
    branch: str = Field(
        default="", description="Checked out branch, empty when HEAD is detached"
    )
    head: str = Field(default="", description="SHA of the HEAD commit")
    bare: bool = Field(default=False, description="Whether this is the bare repository entry")
    detached: bool = Field(default=False, description="Whether HEAD is detached")
    locked: bool = Field(default=False, description="Whether the worktree is locked")

    @property
    def name(self) -> str:
        """Get the worktree directory name."""
        return self.path.name

    @property
    def short_head(self) -> str:
        return self.head[:7]


class CleanableWorktree(WorktreeInfo):
    """A worktree that passed every auto-clean check."""

    age_days: int = Field(ge=0, description="Days since the worktree was created")
    has_uncommitted: bool = Field(
        default=False, description="Whether the working tree has local modifications"
    )
    has_unpushed: bool = Field(
        default=False, description="Whether the branch is ahead of its upstream"
    )
