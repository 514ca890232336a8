"""
gw - Git worktree convenience tool.

This package wraps ``git worktree`` with per-repository configuration,
file copying between worktrees, lifecycle hooks and automatic cleanup of
stale worktrees.
"""

__version__ = "0.1.0"

from gw_tool.config import Config, JsonConfigStore, load_config

__all__ = [
    "__version__",
    "Config",
    "JsonConfigStore",
    "load_config",
]
