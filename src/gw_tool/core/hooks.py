"""
Hook execution for pre/post command hooks.

Hooks are shell commands from the config. Before running, the placeholders
{worktree}, {worktreePath}, {gitRoot} and {branch} are substituted.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class HookVariables:
    """Values available for substitution in hook commands."""

    worktree: str
    worktree_path: str
    git_root: str
    branch: str


@dataclass
class HookResult:
    """Result of executing a single hook."""

    command: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def substitute_variables(command: str, variables: HookVariables) -> str:
    """Replace hook placeholders with their values."""
    replacements = {
        "{worktree}": variables.worktree,
        "{worktreePath}": variables.worktree_path,
        "{gitRoot}": variables.git_root,
        "{branch}": variables.branch,
    }
    for placeholder, value in replacements.items():
        command = command.replace(placeholder, value)
    return command


def execute_hook(command: str, cwd: Path, variables: HookVariables) -> HookResult:
    """
    Execute a single hook command through the shell.

    Output is not captured; the hook writes straight to the terminal.
    """
    expanded = substitute_variables(command, variables)
    logger.info(f"Running hook: {expanded}")

    try:
        result = subprocess.run(expanded, shell=True, cwd=cwd)
        exit_code = result.returncode
    except OSError as e:
        logger.warning(f"Could not run hook '{expanded}': {e}")
        exit_code = 127

    return HookResult(command=expanded, exit_code=exit_code)


def execute_hooks(
    commands: list[str],
    cwd: Path,
    variables: HookVariables,
    hook_type: str,
    abort_on_failure: bool = True,
) -> tuple[list[HookResult], bool]:
    """
    Execute a list of hooks in order.

    Args:
        commands: Hook commands to run.
        cwd: Working directory for the hooks.
        variables: Values for placeholder substitution.
        hook_type: Label used in log messages, e.g. "pre-checkout".
        abort_on_failure: Stop at the first failing hook.

    Returns:
        Tuple of (results of the hooks that ran, whether all succeeded).
    """
    results = []
    all_successful = True

    for command in commands:
        result = execute_hook(command, cwd, variables)
        results.append(result)

        if not result.success:
            all_successful = False
            logger.warning(f"{hook_type} hook failed with exit code {result.exit_code}: {result.command}")
            if abort_on_failure:
                break

    return results, all_successful
