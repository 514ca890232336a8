"""
Pytest configuration and shared fixtures for gw tests.
"""

import os
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Generator, Optional

import pytest

from gw_tool.config import Config, LoadedConfig
from gw_tool.core.worktree import WorktreeError
from gw_tool.models.worktree_info import WorktreeInfo

DAY_SECONDS = 24 * 60 * 60


def run_git(cwd: Path, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )


def backdate(path: Path, days: int) -> None:
    """Set the mtime of a worktree's .git entry `days` days into the past."""
    old = time.time() - days * DAY_SECONDS
    os.utime(path / ".git", (old, old))


@pytest.fixture
def temp_directory() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir).resolve()


@pytest.fixture
def temp_dir(temp_directory: Path) -> Path:
    """Alias for temp_directory."""
    return temp_directory


@pytest.fixture
def git_repo(temp_directory: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with one commit on 'main'."""
    repo_path = temp_directory / "test-repo"
    repo_path.mkdir()

    run_git(repo_path, "init")
    run_git(repo_path, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(repo_path, "config", "user.email", "test@example.com")
    run_git(repo_path, "config", "user.name", "Test User")
    run_git(repo_path, "config", "commit.gpgsign", "false")

    (repo_path / "README.md").write_text("# Test Repository\n")
    run_git(repo_path, "add", ".")
    run_git(repo_path, "commit", "-m", "Initial commit")

    yield repo_path


@pytest.fixture
def git_worktree(git_repo: Path, temp_directory: Path) -> Path:
    """Create a linked worktree on branch 'test-branch'."""
    worktree_path = temp_directory / "test-worktree"
    run_git(git_repo, "worktree", "add", "-b", "test-branch", str(worktree_path))
    return worktree_path


# Auto-clean collaborator doubles


class FakeBackend:
    """In-memory worktree backend that records every call."""

    def __init__(
        self,
        worktrees: list[WorktreeInfo],
        ages: Optional[dict[str, int]] = None,
        uncommitted: tuple[str, ...] = (),
        unpushed: tuple[str, ...] = (),
        failing: tuple[str, ...] = (),
        list_error: Optional[Exception] = None,
    ):
        self.worktrees = list(worktrees)
        self.ages = ages or {}
        self.uncommitted = set(uncommitted)
        self.unpushed = set(unpushed)
        self.failing = set(failing)
        self.list_error = list_error
        self.calls: list[tuple] = []

    def list_worktrees(self) -> list[WorktreeInfo]:
        self.calls.append(("list",))
        if self.list_error:
            raise self.list_error
        return list(self.worktrees)

    def get_worktree_age_days(self, worktree_path) -> int:
        self.calls.append(("age", str(worktree_path)))
        return self.ages.get(str(worktree_path), 0)

    def has_uncommitted_changes(self, worktree_path) -> bool:
        self.calls.append(("uncommitted", str(worktree_path)))
        return str(worktree_path) in self.uncommitted

    def has_unpushed_commits(self, worktree_path) -> bool:
        self.calls.append(("unpushed", str(worktree_path)))
        return str(worktree_path) in self.unpushed

    def remove_worktree(self, worktree_path, force: bool = False) -> None:
        self.calls.append(("remove", str(worktree_path), force))
        if str(worktree_path) in self.failing:
            raise WorktreeError(f"Failed to remove worktree {worktree_path}")
        self.worktrees = [wt for wt in self.worktrees if str(wt.path) != str(worktree_path)]

    def paths(self) -> list[str]:
        return [str(wt.path) for wt in self.worktrees]

    def called(self, method: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == method]


class InMemoryConfigStore:
    """Config store keeping the record in memory, with copy-on-load semantics."""

    def __init__(self, config: Config, root: Path = Path("/repo")):
        self.config = config
        self.root = root
        self.saved: list[Config] = []
        self.load_error: Optional[Exception] = None
        self.save_error: Optional[Exception] = None

    def load(self) -> LoadedConfig:
        if self.load_error:
            raise self.load_error
        return LoadedConfig(self.config.model_copy(deep=True), self.root)

    def save(self, root: Path, config: Config) -> None:
        if self.save_error:
            raise self.save_error
        self.saved.append(config.model_copy(deep=True))
        self.config = config.model_copy(deep=True)


class FakeClock:
    """Callable returning a controllable epoch-milliseconds time."""

    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now


class ScriptedPrompt:
    """Prompt double returning a fixed response and recording messages."""

    def __init__(self, response: Optional[str]):
        self.response = response
        self.messages: list[str] = []

    def __call__(self, message: str) -> Optional[str]:
        self.messages.append(message)
        return self.response


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def make_store():
    return InMemoryConfigStore


@pytest.fixture
def make_prompt():
    return ScriptedPrompt


@pytest.fixture
def backdate_worktree():
    return backdate


@pytest.fixture
def git():
    return run_git


@pytest.fixture
def make_clock():
    return FakeClock
