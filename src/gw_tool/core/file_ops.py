"""Copying files and directories between worktrees."""

import logging
import shutil
from pathlib import Path

from gw_tool.models.maintenance import CopyResult

logger = logging.getLogger(__name__)


def copy_path(source: Path, target: Path) -> None:
    """Copy a file or a whole directory tree, creating parent directories."""
    target.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, target, dirs_exist_ok=True)
    else:
        shutil.copy2(source, target)


def copy_files(
    source_root: Path,
    target_root: Path,
    relative_paths: list[str],
    dry_run: bool = False,
) -> list[CopyResult]:
    """
    Copy files/directories from one worktree to another.

    Relative directory structure is preserved. A missing or failing path is
    reported in its result and does not stop the remaining copies.

    Args:
        source_root: Worktree to copy from.
        target_root: Worktree to copy to.
        relative_paths: Paths relative to both roots.
        dry_run: If True, report what would be copied without copying.

    Returns:
        One CopyResult per requested path, in order.
    """
    results = []
    prefix = "Would copy" if dry_run else "Copied"

    for relative_path in relative_paths:
        source = Path(source_root) / relative_path
        target = Path(target_root) / relative_path

        if not source.exists():
            results.append(
                CopyResult(success=False, message=f"Source not found: {relative_path}", path=relative_path)
            )
            continue

        if not dry_run:
            try:
                copy_path(source, target)
            except OSError as e:
                logger.debug(f"Copy of {source} failed", exc_info=True)
                results.append(
                    CopyResult(
                        success=False,
                        message=f"Failed to copy {relative_path}: {e}",
                        path=relative_path,
                    )
                )
                continue

        kind = "directory" if source.is_dir() else "file"
        results.append(
            CopyResult(success=True, message=f"{prefix} {kind}: {relative_path}", path=relative_path)
        )

    return results
