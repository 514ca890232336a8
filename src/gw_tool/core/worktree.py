"""Git worktree management operations."""

import logging
import math
import re
import time
from pathlib import Path
from typing import Optional

from git import Git, Repo
from git.exc import GitCommandError, GitError, InvalidGitRepositoryError, NoSuchPathError

from gw_tool.core.paths import resolve_worktree_path
from gw_tool.models.maintenance import UpdateResult
from gw_tool.models.worktree_info import WorktreeInfo

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class WorktreeError(Exception):
    """Base exception for worktree operations."""


class WorktreeNotFoundError(WorktreeError):
    """Raised when a worktree cannot be found."""


class WorktreeAlreadyExistsError(WorktreeError):
    """Raised when trying to create a worktree that already exists."""


class NotAGitRepositoryError(WorktreeError):
    """Raised when the path is not a git repository."""


def find_git_root(start: Optional[Path] = None) -> Path:
    """
    Find the repository root for a directory.

    For linked worktrees this is the main repository's root, so every
    worktree of a repository resolves to the same place. Bare repositories
    resolve to the bare directory itself.

    Args:
        start: Directory to start from. Defaults to current directory.

    Returns:
        Absolute path of the repository root.

    Raises:
        NotAGitRepositoryError: If no repository is found.
    """
    start = Path(start or Path.cwd())
    try:
        repo = Repo(start, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        raise NotAGitRepositoryError(f"Not a git repository: {start}") from e

    if repo.bare:
        return Path(repo.git_dir).resolve()

    common_dir = Path(repo.common_dir)
    if not common_dir.is_absolute():
        common_dir = Path(repo.git_dir) / common_dir
    return common_dir.resolve().parent


class WorktreeManager:
    """
    Manages git worktree operations for a repository.

    Besides creating and deleting worktrees, this is the backend the
    auto-clean engine queries: worktree inventory, worktree age, and the
    uncommitted/unpushed safety checks.
    """

    def __init__(self, root: Optional[Path] = None):
        """
        Initialize the WorktreeManager.

        Args:
            root: Repository root. Defaults to the root found from the
                current directory.

        Raises:
            NotAGitRepositoryError: If the path is not a git repository.
        """
        self.root = Path(root) if root else find_git_root()
        try:
            self.repo = Repo(self.root, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise NotAGitRepositoryError(f"Not a git repository: {self.root}") from e

    def list_worktrees(self) -> list[WorktreeInfo]:
        """
        List all worktrees for the repository.

        Returns:
            List of WorktreeInfo objects in the order git reports them.

        Raises:
            WorktreeError: If git cannot list the worktrees.
        """
        try:
            output = self.repo.git.worktree("list", "--porcelain")
        except GitCommandError as e:
            raise WorktreeError(f"Failed to list worktrees: {e.stderr}") from e

        worktrees = self.parse_porcelain(output)
        logger.debug(f"Found {len(worktrees)} worktrees")
        return worktrees

    @staticmethod
    def parse_porcelain(output: str) -> list[WorktreeInfo]:
        """
        Parse ``git worktree list --porcelain`` output.

        Format:
            worktree /path/to/worktree
            HEAD commit_sha
            branch refs/heads/branch-name
            (blank line between worktrees)
        """
        worktrees: list[WorktreeInfo] = []
        current: dict = {}

        for line in output.split("\n"):
            line = line.strip()

            if not line:
                if current.get("path"):
                    worktrees.append(WorktreeInfo(**current))
                current = {}
                continue

            if line.startswith("worktree "):
                current["path"] = Path(line[len("worktree "):])
            elif line.startswith("HEAD "):
                current["head"] = line[len("HEAD "):]
            elif line.startswith("branch "):
                current["branch"] = line[len("branch "):].removeprefix("refs/heads/")
            elif line == "bare":
                current["bare"] = True
            elif line == "detached":
                current["detached"] = True
            elif line == "locked" or line.startswith("locked "):
                current["locked"] = True

        if current.get("path"):
            worktrees.append(WorktreeInfo(**current))

        return worktrees

    def get_worktree_age_days(self, worktree_path: Path | str) -> int:
        """
        Get the age of a worktree in whole days.

        The modification time of the worktree's ``.git`` entry stands in for
        its creation time. Any error yields 0, which never qualifies for
        cleanup unless the threshold is 0.
        """
        try:
            mtime = (Path(worktree_path) / ".git").stat().st_mtime
        except OSError as e:
            logger.debug(f"Could not stat {worktree_path}: {e}")
            return 0

        age_days = math.floor((time.time() - mtime) / SECONDS_PER_DAY)
        return max(age_days, 0)

    def has_uncommitted_changes(self, worktree_path: Path | str) -> bool:
        """Check if worktree has uncommitted changes. Errors count as changes."""
        try:
            output = Git(str(worktree_path)).status("--porcelain")
        except (GitError, OSError) as e:
            logger.debug(f"git status failed in {worktree_path}: {e}")
            return True
        return bool(output.strip())

    def has_unpushed_commits(self, worktree_path: Path | str) -> bool:
        """
        Check if worktree has commits its upstream does not.

        A branch without an upstream has nothing to compare against and
        reports False. Errors after an upstream was found count as unpushed.
        """
        git = Git(str(worktree_path))
        try:
            git.rev_parse("--abbrev-ref", "@{u}")
        except (GitError, OSError):
            return False

        try:
            count = git.rev_list("@{u}..HEAD", "--count")
            return int(count.strip()) > 0
        except (GitError, OSError, ValueError) as e:
            logger.debug(f"Could not count unpushed commits in {worktree_path}: {e}")
            return True

    def remove_worktree(self, worktree_path: Path | str, force: bool = False) -> None:
        """
        Remove a worktree's directory and administrative files.

        Raises:
            WorktreeError: If git refuses to remove the worktree.
        """
        args = ["remove"]
        if force:
            args.append("--force")
        args.append(str(worktree_path))

        try:
            self.repo.git.worktree(*args)
        except GitCommandError as e:
            raise WorktreeError(f"Failed to remove worktree {worktree_path}: {e.stderr}") from e

        logger.info(f"Removed worktree at {worktree_path}")

    def prune(self, dry_run: bool = False, verbose: bool = False) -> str:
        """
        Prune administrative files of worktrees whose directory is gone.

        Returns:
            Git's report of what was (or would be) pruned, empty unless
            verbose or dry_run.
        """
        args = ["prune"]
        if dry_run:
            args.append("--dry-run")
        if verbose:
            args.append("--verbose")

        try:
            _, stdout, stderr = self.repo.git.worktree(*args, with_extended_output=True)
            return "\n".join(filter(None, [stdout, stderr]))
        except GitCommandError as e:
            raise WorktreeError(f"Failed to prune worktrees: {e.stderr}") from e

    def find(self, identifier: str) -> Optional[WorktreeInfo]:
        """
        Find a worktree by name, branch, or path.

        Args:
            identifier: Worktree directory name, branch name, or path.

        Returns:
            WorktreeInfo if found, None otherwise.
        """
        target = resolve_worktree_path(self.root, identifier)

        for wt in self.list_worktrees():
            if wt.bare:
                continue
            if wt.branch == identifier or wt.name == identifier:
                return wt
            if wt.path == target or str(wt.path) == identifier:
                return wt

        return None

    def get(self, identifier: str) -> WorktreeInfo:
        """
        Get information about a specific worktree.

        Raises:
            WorktreeNotFoundError: If the worktree cannot be found.
        """
        worktree = self.find(identifier)
        if not worktree:
            raise WorktreeNotFoundError(f"Worktree not found: {identifier}")
        return worktree

    def create(
        self,
        name: str,
        base_branch: Optional[str] = None,
        force: bool = False,
        strict_base: bool = False,
    ) -> WorktreeInfo:
        """
        Create a new worktree named NAME under the repository root.

        The branch is NAME. An existing local branch is checked out, an
        existing ``origin/NAME`` becomes a new tracking branch, and
        otherwise a new branch is started from ``base_branch``.

        Args:
            name: Worktree and branch name.
            base_branch: Start point for new branches.
            force: Pass --force to git (check out a branch already used
                elsewhere).
            strict_base: Fail instead of using the local base branch when
                fetching it from origin fails. Set when the user named the
                base branch explicitly.

        Returns:
            WorktreeInfo for the created worktree.

        Raises:
            WorktreeAlreadyExistsError: If the target path already exists.
            WorktreeError: If worktree creation fails.
        """
        worktree_path = resolve_worktree_path(self.root, name)

        if worktree_path.exists():
            raise WorktreeAlreadyExistsError(f"Directory already exists: {worktree_path}")

        args = ["add"]
        if force:
            args.append("--force")

        if self.branch_exists(name):
            args.extend([str(worktree_path), name])
        elif self.remote_branch_exists(name):
            args.extend(["--track", "-b", name, str(worktree_path), f"origin/{name}"])
        else:
            conflict = self.find_ref_conflict(name)
            if conflict:
                raise WorktreeError(
                    f"Cannot create branch '{name}': it conflicts with existing branch '{conflict}'"
                )
            start_point = self.fetch_start_point(
                base_branch or self._current_branch(), strict=strict_base
            )
            args.extend(["-b", name, str(worktree_path), start_point])

        try:
            self.repo.git.worktree(*args)
        except GitCommandError as e:
            raise WorktreeError(f"Failed to create worktree: {e.stderr}") from e

        worktree = self.find(str(worktree_path))
        if not worktree:
            raise WorktreeError(f"Worktree created but not found. Path: {worktree_path}")

        logger.info(f"Created worktree {worktree.branch} at {worktree.path}")
        return worktree

    def branch_exists(self, branch: str) -> bool:
        """Check if a local branch exists."""
        return self._verify(f"refs/heads/{branch}")

    def remote_branch_exists(self, branch: str, remote: str = "origin") -> bool:
        """Check if a remote-tracking branch exists."""
        return self._verify(f"refs/remotes/{remote}/{branch}")

    def find_ref_conflict(self, branch: str) -> Optional[str]:
        """
        Find an existing branch that makes BRANCH impossible to create.

        Git cannot hold both ``refs/heads/foo`` and ``refs/heads/foo/bar``.
        """
        try:
            output = self.repo.git.for_each_ref("--format=%(refname:short)", "refs/heads/")
        except GitCommandError:
            return None

        for existing in filter(None, output.split("\n")):
            if existing.startswith(f"{branch}/") or branch.startswith(f"{existing}/"):
                return existing
        return None

    def _verify(self, ref: str) -> bool:
        try:
            self.repo.git.rev_parse("--verify", "--quiet", ref)
            return True
        except GitCommandError:
            return False

    def _current_branch(self) -> str:
        try:
            return self.repo.active_branch.name
        except TypeError:
            return "HEAD"

    def fetch_start_point(self, branch: str, remote: str = "origin", strict: bool = False) -> str:
        """
        Fetch BRANCH from the remote and prefer the fresh remote ref.

        Without the remote configured the local branch is used. A failed
        fetch also falls back to the local branch unless ``strict`` is set,
        which is how an explicitly requested source branch is handled.

        Raises:
            WorktreeError: If strict and the fetch failed.
        """
        if remote not in [r.name for r in self.repo.remotes]:
            logger.debug(f"No remote '{remote}' configured, using local {branch}")
            return branch

        try:
            self.repo.git.fetch(remote, f"refs/heads/{branch}:refs/remotes/{remote}/{branch}")
        except GitCommandError as e:
            if strict:
                raise WorktreeError(
                    f"Could not fetch {branch} from {remote}: {e.stderr.strip()}. "
                    f"Refusing to use a possibly outdated local {branch}."
                ) from e
            logger.warning(f"Could not fetch {branch} from {remote}: {e.stderr}")
            return branch

        if self.remote_branch_exists(branch, remote):
            return f"{remote}/{branch}"
        return branch

    @staticmethod
    def worktree_root(path: Path | str) -> Path:
        """
        Top-level directory of the worktree containing PATH.

        Raises:
            WorktreeError: If PATH is not inside a worktree.
        """
        try:
            return Path(Git(str(path)).rev_parse("--show-toplevel").strip())
        except (GitError, OSError) as e:
            raise WorktreeError(f"Not inside a worktree: {path}") from e

    @staticmethod
    def is_detached(worktree_path: Path | str) -> bool:
        try:
            Git(str(worktree_path)).symbolic_ref("-q", "HEAD")
        except GitCommandError:
            return True
        return False

    @staticmethod
    def branch_of(worktree_path: Path | str) -> str:
        """Branch checked out in a worktree, empty when HEAD is detached."""
        try:
            return Git(str(worktree_path)).symbolic_ref("--short", "-q", "HEAD").strip()
        except GitCommandError:
            return ""

    def update_worktree(
        self,
        worktree_path: Path | str,
        start_point: str,
        strategy: str = "merge",
    ) -> UpdateResult:
        """
        Merge START_POINT into the worktree's branch, or rebase onto it.

        Conflicts are left in place for the user to resolve.

        Args:
            worktree_path: Worktree to update.
            start_point: Ref to bring in, e.g. ``origin/main``.
            strategy: "merge" or "rebase".

        Returns:
            UpdateResult describing what happened.
        """
        git = Git(str(worktree_path))
        before = git.rev_parse("HEAD").strip()

        try:
            if strategy == "rebase":
                git.rebase(start_point)
            else:
                git.merge("--no-edit", start_point)
        except GitCommandError as e:
            text = f"{e.stdout}\n{e.stderr}"
            if "CONFLICT" in text:
                return UpdateResult(
                    success=False,
                    conflicted=True,
                    message=f"{strategy.capitalize()} conflict detected",
                )
            return UpdateResult(
                success=False,
                message=str(e.stderr).strip() or f"{strategy.capitalize()} failed",
            )

        after = git.rev_parse("HEAD").strip()
        if before == after:
            return UpdateResult(success=True, up_to_date=True, message="Already up to date")

        files_changed = 0
        match = re.search(r"(\d+) files? changed", git.diff("--shortstat", before, after))
        if match:
            files_changed = int(match.group(1))

        logger.info(f"Updated {worktree_path} with {start_point} ({strategy})")
        return UpdateResult(success=True, files_changed=files_changed)
