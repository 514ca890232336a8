"""
Tests for copying files between worktrees.
"""

import pytest

from gw_tool.core.file_ops import copy_files


@pytest.fixture
def source(temp_directory):
    root = temp_directory / "source"
    (root / "config" / "nested").mkdir(parents=True)
    (root / ".env").write_text("SECRET=1\n")
    (root / "config" / "app.json").write_text("{}\n")
    (root / "config" / "nested" / "deep.txt").write_text("deep\n")
    return root


@pytest.fixture
def target(temp_directory):
    root = temp_directory / "target"
    root.mkdir()
    return root


class TestCopyFiles:
    """Tests for copy_files."""

    def test_copies_file(self, source, target):
        results = copy_files(source, target, [".env"])

        assert results[0].success is True
        assert results[0].message == "Copied file: .env"
        assert (target / ".env").read_text() == "SECRET=1\n"

    def test_copies_directory_recursively(self, source, target):
        results = copy_files(source, target, ["config"])

        assert results[0].message == "Copied directory: config"
        assert (target / "config" / "nested" / "deep.txt").read_text() == "deep\n"

    def test_preserves_relative_structure(self, source, target):
        copy_files(source, target, ["config/nested/deep.txt"])

        assert (target / "config" / "nested" / "deep.txt").exists()
        assert not (target / "config" / "app.json").exists()

    def test_missing_source_does_not_stop_others(self, source, target):
        results = copy_files(source, target, ["missing.txt", ".env"])

        assert [r.success for r in results] == [False, True]
        assert results[0].message == "Source not found: missing.txt"
        assert (target / ".env").exists()

    def test_dry_run_copies_nothing(self, source, target):
        results = copy_files(source, target, [".env", "config"], dry_run=True)

        assert [r.message for r in results] == [
            "Would copy file: .env",
            "Would copy directory: config",
        ]
        assert list(target.iterdir()) == []

    def test_overwrites_existing_file(self, source, target):
        (target / ".env").write_text("OLD\n")

        copy_files(source, target, [".env"])

        assert (target / ".env").read_text() == "SECRET=1\n"
