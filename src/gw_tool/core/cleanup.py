"""
Cleanup service for ``gw clean`` and ``gw prune --clean``.

This module provides functionality to:
- Detect stale worktrees based on a configurable age threshold
- Find every removable worktree regardless of age (prune mode)
- Protect worktrees with uncommitted changes or unpushed commits
- Clean up worktrees with dry-run and force support
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from gw_tool.core.auto_clean import WorktreeBackend
from gw_tool.models.maintenance import CleanupReport, StaleWorktree

logger = logging.getLogger(__name__)


@dataclass
class CleanupConfig:
    """Configuration for cleanup operations."""

    stale_threshold_days: int = 7
    default_branch: str = "main"
    protect_uncommitted: bool = True
    protect_unpushed: bool = True
    ignore_age: bool = False
    current_path: Optional[Path] = None

    def __post_init__(self):
        if self.stale_threshold_days < 0:
            raise ValueError("stale_threshold_days must be at least 0")


class CleanupService:
    """
    Service for cleaning up stale worktrees on request.

    Unlike auto-clean, this reports the worktrees it skipped and why, and
    can be forced past the safety checks.
    """

    def __init__(self, backend: WorktreeBackend, config: CleanupConfig | None = None):
        self.backend = backend
        self.config = config or CleanupConfig()

    def should_protect_worktree(self, has_uncommitted: bool, has_unpushed: bool) -> tuple[bool, str]:
        """
        Determine if a worktree should be protected from cleanup.

        Returns:
            Tuple of (should_protect, reason)
        """
        if self.config.protect_uncommitted and has_uncommitted:
            return True, "has uncommitted changes"

        if self.config.protect_unpushed and has_unpushed:
            return True, "has unpushed commits"

        return False, ""

    def analyze(self, force: bool = False) -> tuple[int, list[StaleWorktree]]:
        """
        Find the worktrees that are candidates for removal.

        The bare entry and the default-branch worktree are never candidates.
        Unless ``ignore_age`` is set, only worktrees at or over the age
        threshold are. The current worktree is reported but never cleanable,
        even with force.

        Args:
            force: If True, ignore protection rules.

        Returns:
            Tuple of (number of worktrees scanned, candidate worktrees).
        """
        worktrees = [
            wt for wt in self.backend.list_worktrees()
            if not wt.bare and wt.branch != self.config.default_branch
        ]
        stale = []

        for wt in worktrees:
            age_days = self.backend.get_worktree_age_days(wt.path)
            if not self.config.ignore_age and age_days < self.config.stale_threshold_days:
                continue

            has_uncommitted = self.backend.has_uncommitted_changes(wt.path)
            has_unpushed = self.backend.has_unpushed_commits(wt.path)

            if self._is_current(wt.path):
                can_clean, reason = False, "current worktree (cannot remove)"
            else:
                protect, reason = self.should_protect_worktree(has_uncommitted, has_unpushed)
                can_clean = force or not protect

            stale.append(
                StaleWorktree(
                    path=str(wt.path),
                    branch=wt.branch,
                    age_days=age_days,
                    has_uncommitted=has_uncommitted,
                    has_unpushed=has_unpushed,
                    can_clean=can_clean,
                    reason=reason or None,
                )
            )

        return len(worktrees), stale

    def _is_current(self, worktree_path: Path | str) -> bool:
        if self.config.current_path is None:
            return False
        return Path(worktree_path).resolve() == Path(self.config.current_path).resolve()

    def cleanup(self, dry_run: bool = True, force: bool = False) -> CleanupReport:
        """
        Clean up stale worktrees.

        Args:
            dry_run: If True, don't actually delete anything
            force: If True, ignore protection rules and force git removal

        Returns:
            CleanupReport with details of the operation
        """
        scanned, stale = self.analyze(force=force)

        report = CleanupReport(
            timestamp=datetime.now(),
            dry_run=dry_run,
            force=force,
            stale_threshold_days=self.config.stale_threshold_days,
            worktrees_scanned=scanned,
            stale_worktrees_found=len(stale),
        )

        for wt in stale:
            if not wt.can_clean:
                report.worktrees_skipped += 1
                report.skipped_paths.append(f"{wt.path} ({wt.reason})")
                continue

            if dry_run:
                report.worktrees_cleaned += 1
                report.cleaned_paths.append(wt.path)
                continue

            try:
                self.backend.remove_worktree(wt.path, force=force)
                report.worktrees_cleaned += 1
                report.cleaned_paths.append(wt.path)
            except Exception as e:
                logger.warning(f"Failed to delete {wt.path}: {e}")
                report.errors.append(f"Failed to delete {wt.path}: {e}")

        return report
