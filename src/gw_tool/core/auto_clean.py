"""
Automatic cleanup of stale worktrees.

Runs after commands such as ``gw add`` and ``gw list`` when ``autoClean`` is
enabled, at most once per cooldown window. A worktree is removed only when
it is old enough, is not on the default branch, and has neither uncommitted
changes nor unpushed commits.

Auto-clean is always a side effect of another command, so neither entry
point ever raises: every failure degrades to "did nothing this time".
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Protocol

import click
from rich.console import Console

from gw_tool.models.worktree_info import CleanableWorktree, WorktreeInfo

if TYPE_CHECKING:
    from gw_tool.config import Config, LoadedConfig

logger = logging.getLogger(__name__)

COOLDOWN_MS = 24 * 60 * 60 * 1000

ACCEPT_RESPONSES = frozenset({"", "y", "yes"})


class WorktreeBackend(Protocol):
    """Worktree inventory, age and change-state queries plus removal."""

    def list_worktrees(self) -> list[WorktreeInfo]: ...

    def get_worktree_age_days(self, worktree_path: Path | str) -> int: ...

    def has_uncommitted_changes(self, worktree_path: Path | str) -> bool: ...

    def has_unpushed_commits(self, worktree_path: Path | str) -> bool: ...

    def remove_worktree(self, worktree_path: Path | str, force: bool = False) -> None: ...


class ConfigStore(Protocol):
    """Whole-record load/save of the per-repository config."""

    def load(self) -> LoadedConfig: ...

    def save(self, root: Path, config: Config) -> None: ...


PromptFunc = Callable[[str], Optional[str]]
ClockFunc = Callable[[], int]


def now_ms() -> int:
    """Current time in Unix epoch milliseconds."""
    return int(time.time() * 1000)


def read_response(message: str) -> Optional[str]:
    """
    Ask the user a question and return the raw answer.

    Returns None when stdin is not a terminal or input is aborted, so the
    caller can treat unavailable input as a decline.
    """
    if not sys.stdin.isatty():
        return None
    try:
        return click.prompt(message, default="", show_default=False, prompt_suffix="")
    except click.Abort:
        return None


def is_acceptance(response: Optional[str]) -> bool:
    """Bare Enter, "y" and "yes" accept; None and anything else decline."""
    if response is None:
        return False
    return response.strip().lower() in ACCEPT_RESPONSES


def pluralize(count: int, word: str = "worktree") -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class AutoCleanEngine:
    """
    Decides which worktrees are safe to remove and removes them.

    Collaborators are injected: the config store, the worktree backend, the
    prompt used by interactive runs and the clock, so the engine can run
    against in-memory doubles.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        backend: WorktreeBackend,
        prompt: Optional[PromptFunc] = None,
        clock: Optional[ClockFunc] = None,
        console: Optional[Console] = None,
    ):
        self.config_store = config_store
        self.backend = backend
        self.prompt = prompt or read_response
        self.clock = clock or now_ms
        self.console = console or Console()

    def compute_cleanable_set(
        self, threshold: int, default_branch: str
    ) -> list[CleanableWorktree]:
        """
        Find the worktrees that are safe to remove.

        The default branch is checked before any age query. Only worktrees
        at least ``threshold`` days old with no uncommitted changes and no
        unpushed commits are returned, in inventory order.

        Args:
            threshold: Minimum age in days (inclusive). 0 means any age.
            default_branch: Branch that is never cleaned (exact match).

        Returns:
            List of CleanableWorktree.
        """
        if threshold < 0:
            raise ValueError("threshold must be at least 0")

        cleanable = []

        for wt in self.backend.list_worktrees():
            if wt.bare or wt.branch == default_branch:
                continue

            age_days = self.backend.get_worktree_age_days(wt.path)
            if age_days < threshold:
                continue

            has_uncommitted = self.backend.has_uncommitted_changes(wt.path)
            has_unpushed = self.backend.has_unpushed_commits(wt.path)

            if not has_uncommitted and not has_unpushed:
                cleanable.append(
                    CleanableWorktree(
                        **wt.model_dump(),
                        age_days=age_days,
                        has_uncommitted=has_uncommitted,
                        has_unpushed=has_unpushed,
                    )
                )

        logger.debug(
            f"{pluralize(len(cleanable))} cleanable "
            f"(threshold={threshold}, default_branch={default_branch})"
        )
        return cleanable

    def run_silent(self) -> int:
        """
        Remove stale worktrees without asking.

        Returns:
            Number of worktrees actually removed; 0 when disabled, cooling
            down, or on any failure.
        """
        try:
            return self._run_silent()
        except Exception:
            logger.debug("Auto-clean failed", exc_info=True)
            return 0

    def run_interactive(self) -> None:
        """
        Offer to remove stale worktrees, defaulting to yes.

        The cooldown timestamp is saved before prompting so an interrupted
        prompt still consumes the cooldown. Nothing is printed when there
        is nothing to clean.
        """
        try:
            self._run_interactive()
        except Exception:
            logger.debug("Interactive auto-clean failed", exc_info=True)

    def _due(self, config: Config) -> bool:
        if not config.auto_clean:
            return False
        if config.last_auto_clean_time is None:
            return True
        return self.clock() - config.last_auto_clean_time >= COOLDOWN_MS

    def _scan(self, config: Config) -> list[CleanableWorktree]:
        return self.compute_cleanable_set(config.clean_threshold, config.default_branch)

    def _mark_run(self, loaded: LoadedConfig) -> None:
        loaded.config.last_auto_clean_time = self.clock()
        self.config_store.save(loaded.root, loaded.config)

    def _remove_all(self, worktrees: list[CleanableWorktree]) -> int:
        removed = 0
        for wt in worktrees:
            try:
                self.backend.remove_worktree(wt.path, force=False)
                removed += 1
            except Exception as e:
                logger.debug(f"Auto-clean could not remove {wt.path}: {e}")
        return removed

    def _run_silent(self) -> int:
        loaded = self.config_store.load()
        if not self._due(loaded.config):
            return 0

        cleanable = self._scan(loaded.config)
        removed = self._remove_all(cleanable)
        self._mark_run(loaded)

        if removed:
            logger.info(f"Auto-clean removed {pluralize(removed)}")
        return removed

    def _run_interactive(self) -> None:
        loaded = self.config_store.load()
        if not self._due(loaded.config):
            return

        cleanable = self._scan(loaded.config)
        self._mark_run(loaded)

        if not cleanable:
            return

        threshold = loaded.config.clean_threshold
        self.console.print()
        response = self.prompt(
            f"Found {pluralize(len(cleanable), 'stale worktree')} "
            f"({threshold}+ days old). Clean them up? [Y/n]: "
        )

        if is_acceptance(response):
            removed = self._remove_all(cleanable)
            if removed:
                self.console.print(
                    f"[green]✓[/green] Removed {pluralize(removed, 'stale worktree')}"
                )
        else:
            self.console.print("Skipped cleanup. Run [bold]gw clean[/bold] manually if needed.")
        self.console.print()


def run_auto_clean(engine: AutoCleanEngine, console: Optional[Console] = None) -> int:
    """Run a silent auto-clean and print a one-line summary if anything was removed."""
    removed = engine.run_silent()
    if removed:
        (console or engine.console).print(
            f"\n[bold]Auto-cleanup:[/bold] Removed {pluralize(removed, 'stale worktree')}\n"
        )
    return removed


def start_background_auto_clean(engine: AutoCleanEngine) -> threading.Thread:
    """
    Start a silent auto-clean on a separate thread.

    The thread is not a daemon, so the interpreter waits for a started
    removal to finish. Callers may join the thread or discard it.
    """
    thread = threading.Thread(target=engine.run_silent, name="gw-auto-clean")
    thread.start()
    return thread
