"""
Configuration management for gw.

Per-repository configuration is stored at ``<root>/.gw/config.json``. The
file is located by walking up from the current directory; when none exists
the git root is auto-detected and a default config is written there.

JSON keys are camelCase (``defaultBranch``, ``cleanThreshold``...), model
attributes are snake_case.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from gw_tool.core.worktree import NotAGitRepositoryError, find_git_root
from gw_tool.utils.io import atomic_write_text

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".gw"
CONFIG_FILE_NAME = "config.json"

# Increment when adding an entry to MIGRATIONS
CURRENT_CONFIG_VERSION = 1


class ConfigError(Exception):
    """Raised when the config file cannot be found, read or validated."""


class UpdateStrategy(str, Enum):
    """How a worktree is brought up to date with the default branch."""

    MERGE = "merge"
    REBASE = "rebase"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class CommandHooks(_ConfigModel):
    """Shell commands run before and after a gw command."""

    pre: list[str] = Field(default_factory=list, description="Commands run before")
    post: list[str] = Field(default_factory=list, description="Commands run after")


class HooksConfig(_ConfigModel):
    """Lifecycle hooks, keyed by command."""

    checkout: Optional[CommandHooks] = Field(
        default=None,
        description="Hooks around creating a worktree (gw add)",
    )


class Config(_ConfigModel):
    """Per-repository configuration record."""

    config_version: int = Field(
        default=CURRENT_CONFIG_VERSION,
        description="Schema version, used to run migrations",
    )
    root: Optional[str] = Field(
        default=None,
        description="Absolute path of the repository root",
    )
    default_branch: str = Field(
        default="main",
        description="Source branch for new worktrees and file copies; never auto-cleaned",
    )
    auto_copy_files: list[str] = Field(
        default_factory=list,
        description="Files/directories copied into every new worktree",
    )
    hooks: Optional[HooksConfig] = Field(
        default=None,
        description="Commands run before/after gw operations",
    )
    clean_threshold: int = Field(
        default=7,
        ge=0,
        description="Days before a worktree is eligible for cleanup",
    )
    auto_clean: bool = Field(
        default=False,
        description="Automatically clean stale worktrees after add/list",
    )
    last_auto_clean_time: Optional[int] = Field(
        default=None,
        ge=0,
        description="Unix epoch milliseconds of the last auto-clean run",
    )
    update_strategy: Optional[UpdateStrategy] = Field(
        default=None,
        description="Default update strategy (merge or rebase)",
    )

    def checkout_hooks(self) -> CommandHooks:
        """Get the checkout hooks, empty when none are configured."""
        if self.hooks and self.hooks.checkout:
            return self.hooks.checkout
        return CommandHooks()


class LoadedConfig(NamedTuple):
    """A config record together with the repository root it belongs to."""

    config: Config
    root: Path


class Migration(NamedTuple):
    version: int
    description: str
    migrate: Callable[[dict[str, Any]], dict[str, Any]]


def _rename_add_hooks_to_checkout(data: dict[str, Any]) -> dict[str, Any]:
    hooks = data.get("hooks")
    if isinstance(hooks, dict) and "add" in hooks and "checkout" not in hooks:
        hooks["checkout"] = hooks.pop("add")
    return data


# Each migration moves the config from (version - 1) to version.
MIGRATIONS: list[Migration] = [
    Migration(1, "Rename hooks.add to hooks.checkout", _rename_add_hooks_to_checkout),
]


def run_migrations(data: dict[str, Any]) -> tuple[dict[str, Any], list[Migration]]:
    """
    Bring raw config data up to CURRENT_CONFIG_VERSION.

    Args:
        data: Parsed JSON object. Missing configVersion means version 0.

    Returns:
        Tuple of (migrated data, migrations that were applied).
    """
    version = data.get("configVersion", 0)
    if not isinstance(version, int):
        version = 0

    applied = []
    for migration in MIGRATIONS:
        if migration.version > version:
            data = migration.migrate(data)
            data["configVersion"] = migration.version
            applied.append(migration)

    return data, applied


def get_config_path(directory: Path) -> Path:
    """Get the config file path for a repository root."""
    return Path(directory) / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find the config file by walking up from start_path.

    Returns:
        Path to the config file if found, None otherwise.
    """
    current = Path(start_path or Path.cwd()).resolve()

    for directory in (current, *current.parents):
        config_path = get_config_path(directory)
        if config_path.is_file():
            return config_path

    return None


def save_config(root: Path, config: Config) -> None:
    """
    Save configuration to ``<root>/.gw/config.json``.

    The whole record is written and atomically replaces the old file.
    """
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    atomic_write_text(get_config_path(root), json.dumps(data, indent=2) + "\n")


def _read_config_file(config_path: Path) -> tuple[Config, bool]:
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load config {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Invalid configuration file format: {config_path}")

    raw, applied = run_migrations(raw)

    try:
        config = Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration file format: {config_path}\n{e}") from e

    if applied:
        logger.info(
            f"Config {config_path} migrated: "
            + ", ".join(m.description for m in applied)
        )
    return config, bool(applied)


def load_config(start_path: Optional[Path] = None) -> LoadedConfig:
    """
    Load configuration for the repository containing start_path.

    1. Look for .gw/config.json walking up from start_path
    2. If found and it has a root, use it
    3. If found without a root, detect the git root and record it
    4. If not found, detect the git root and create a default config there

    Args:
        start_path: Directory to search from. Defaults to the current directory.

    Returns:
        LoadedConfig with the config and repository root.

    Raises:
        ConfigError: If the file is invalid or no repository can be found.
    """
    config_path = find_config_file(start_path)

    if config_path:
        config, migrated = _read_config_file(config_path)

        if config.root:
            root = Path(config.root)
            if migrated:
                save_config(root, config)
            return LoadedConfig(config, root)

        root = _detect_root(config_path.parent.parent)
        config.root = str(root)
        save_config(root, config)
        logger.info(f"Detected git root and updated config: {root}")
        return LoadedConfig(config, root)

    root = _detect_root(start_path)
    config = Config(root=str(root))
    save_config(root, config)
    logger.info(f"Created config at {get_config_path(root)}")
    return LoadedConfig(config, root)


def _detect_root(start_path: Optional[Path]) -> Path:
    try:
        return find_git_root(start_path)
    except NotAGitRepositoryError as e:
        raise ConfigError(
            "Could not auto-detect git root. "
            "Please run 'gw init --root <path>' to specify the repository root manually."
        ) from e


class JsonConfigStore:
    """
    Config store backed by ``.gw/config.json``.

    Loads and saves whole records; there is no partial update.
    """

    def __init__(self, start_path: Optional[Path] = None):
        self.start_path = start_path

    def load(self) -> LoadedConfig:
        return load_config(self.start_path)

    def save(self, root: Path, config: Config) -> None:
        save_config(root, config)
