"""
Tests for hook variable substitution and execution.
"""

import pytest

from gw_tool.core.hooks import HookVariables, execute_hook, execute_hooks, substitute_variables


@pytest.fixture
def variables(temp_directory):
    return HookVariables(
        worktree="feat-x",
        worktree_path=str(temp_directory / "feat-x"),
        git_root=str(temp_directory),
        branch="feat-x",
    )


class TestSubstituteVariables:
    """Tests for placeholder substitution."""

    def test_all_placeholders(self, variables, temp_directory):
        command = substitute_variables("cd {worktreePath} && echo {worktree} {branch} {gitRoot}", variables)

        assert command == (
            f"cd {temp_directory / 'feat-x'} && echo feat-x feat-x {temp_directory}"
        )

    def test_repeated_placeholder(self, variables):
        assert substitute_variables("{branch}-{branch}", variables) == "feat-x-feat-x"

    def test_unknown_placeholder_left_alone(self, variables):
        assert substitute_variables("echo {other}", variables) == "echo {other}"


class TestExecuteHooks:
    """Tests for running hook commands."""

    def test_successful_hook(self, variables, temp_directory):
        result = execute_hook("echo {branch} > out.txt", temp_directory, variables)

        assert result.success is True
        assert result.command == "echo feat-x > out.txt"
        assert (temp_directory / "out.txt").read_text().strip() == "feat-x"

    def test_failing_hook(self, variables, temp_directory):
        result = execute_hook("exit 3", temp_directory, variables)

        assert result.success is False
        assert result.exit_code == 3

    def test_abort_on_failure(self, variables, temp_directory):
        results, ok = execute_hooks(
            ["true", "exit 1", "touch ran.txt"], temp_directory, variables, "pre-checkout"
        )

        assert ok is False
        assert len(results) == 2
        assert not (temp_directory / "ran.txt").exists()

    def test_continue_on_failure(self, variables, temp_directory):
        results, ok = execute_hooks(
            ["exit 1", "touch ran.txt"],
            temp_directory,
            variables,
            "post-checkout",
            abort_on_failure=False,
        )

        assert ok is False
        assert len(results) == 2
        assert (temp_directory / "ran.txt").exists()

    def test_no_hooks(self, variables, temp_directory):
        assert execute_hooks([], temp_directory, variables, "pre-checkout") == ([], True)
