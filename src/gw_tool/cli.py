"""CLI entry point for gw."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from gw_tool.config import (
    CommandHooks,
    Config,
    ConfigError,
    HooksConfig,
    JsonConfigStore,
    LoadedConfig,
    UpdateStrategy,
    get_config_path,
    load_config,
    save_config,
)
from gw_tool.core.auto_clean import AutoCleanEngine, run_auto_clean
from gw_tool.core.cleanup import CleanupConfig, CleanupService
from gw_tool.core.file_ops import copy_files
from gw_tool.core.hooks import HookVariables, execute_hooks
from gw_tool.core.paths import is_path_inside, resolve_worktree_path
from gw_tool.core.worktree import (
    NotAGitRepositoryError,
    WorktreeError,
    WorktreeManager,
    find_git_root,
)
from gw_tool.models.maintenance import CleanupReport, StaleWorktree

console = Console()


def get_loaded_config() -> LoadedConfig:
    """
    Load the repository config with error handling.

    Raises:
        click.ClickException: If the config cannot be loaded.
    """
    try:
        return load_config()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def get_worktree_manager(root: Optional[Path] = None) -> WorktreeManager:
    """
    Get a WorktreeManager instance with error handling.

    Raises:
        click.ClickException: If not in a git repository.
    """
    try:
        return WorktreeManager(root)
    except NotAGitRepositoryError as e:
        raise click.ClickException(str(e)) from e


def auto_clean_after_command(manager: WorktreeManager) -> None:
    """
    Run auto-clean as the tail of another command.

    Prompts when attached to a terminal, otherwise cleans silently.
    """
    engine = AutoCleanEngine(JsonConfigStore(), manager, console=console)
    if sys.stdin.isatty():
        engine.run_interactive()
    else:
        run_auto_clean(engine, console)


def _configure_logging(verbosity: int) -> None:
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        if level == logging.DEBUG
        else "[%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@click.group()
@click.version_option(package_name="gw-tool")
@click.option("-v", "--verbose", count=True, help="Show log output (-vv for debug).")
def main(verbose: int) -> None:
    """gw - Git worktree workflow tool.

    Create, list, update, copy files into and remove git worktrees, with
    optional automatic cleanup of stale worktrees.
    """
    _configure_logging(verbose)


@main.command("init")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Repository root (auto-detected by default).",
)
@click.option("--default-branch", help="Default source branch (default: main).")
@click.option(
    "--auto-copy",
    "auto_copy_files",
    multiple=True,
    help="File or directory copied into new worktrees. Repeatable.",
)
@click.option(
    "--clean-threshold",
    type=click.IntRange(min=0),
    help="Days before a worktree is considered stale (default: 7).",
)
@click.option(
    "--auto-clean/--no-auto-clean",
    default=None,
    help="Automatically clean stale worktrees after add/list.",
)
@click.option("--pre-checkout", multiple=True, help="Command run before gw add. Repeatable.")
@click.option("--post-checkout", multiple=True, help="Command run after gw add. Repeatable.")
@click.option(
    "--update-strategy",
    type=click.Choice([s.value for s in UpdateStrategy]),
    help="Default strategy for gw update.",
)
def init_config(
    root: Optional[Path],
    default_branch: Optional[str],
    auto_copy_files: tuple[str, ...],
    clean_threshold: Optional[int],
    auto_clean: Optional[bool],
    pre_checkout: tuple[str, ...],
    post_checkout: tuple[str, ...],
    update_strategy: Optional[str],
) -> None:
    """Initialize gw configuration for this repository.

    Writes .gw/config.json at the repository root. Options not given keep
    their current (or default) values.

    Example:
        gw init --default-branch main --auto-copy .env --auto-clean
        gw init --clean-threshold 14 --post-checkout "cd {worktreePath} && npm install"
    """
    if root is None:
        try:
            root = find_git_root()
        except NotAGitRepositoryError as e:
            raise click.ClickException(
                f"{e}. Use --root to specify the repository root manually."
            ) from e
    root = root.resolve()

    config = Config(root=str(root))
    if get_config_path(root).exists():
        try:
            config = load_config(root).config
        except ConfigError as e:
            raise click.ClickException(str(e)) from e
        config.root = str(root)

    if default_branch:
        config.default_branch = default_branch
    if auto_copy_files:
        config.auto_copy_files = list(auto_copy_files)
    if clean_threshold is not None:
        config.clean_threshold = clean_threshold
    if auto_clean is not None:
        config.auto_clean = auto_clean
    if update_strategy:
        config.update_strategy = UpdateStrategy(update_strategy)
    if pre_checkout or post_checkout:
        current = config.checkout_hooks()
        config.hooks = HooksConfig(
            checkout=CommandHooks(
                pre=list(pre_checkout) or current.pre,
                post=list(post_checkout) or current.post,
            )
        )

    save_config(root, config)

    console.print(f"[bold green]Config written to {get_config_path(root)}[/bold green]")
    console.print(f"[bold]Root:[/bold]            {config.root}")
    console.print(f"[bold]Default branch:[/bold]  {config.default_branch}")
    console.print(f"[bold]Clean threshold:[/bold] {config.clean_threshold} days")
    if config.auto_copy_files:
        console.print(f"[bold]Auto-copy:[/bold]       {', '.join(config.auto_copy_files)}")
    if config.auto_clean:
        console.print("[bold]Auto-clean:[/bold]      enabled")


@main.command("add")
@click.argument("name")
@click.argument("files", nargs=-1)
@click.option(
    "--from",
    "base_branch",
    help="Start point for a new branch (default: the configured default branch).",
)
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Force creation even if the branch is checked out elsewhere.",
)
def add_worktree(name: str, files: tuple[str, ...], base_branch: Optional[str], force: bool) -> None:
    """Create a worktree NAME and copy files into it.

    The branch NAME is checked out if it exists locally or on origin,
    otherwise it is created from the freshly fetched base branch. If the
    fetch of a --from branch fails, nothing is created. FILES (or the
    configured autoCopyFiles) are copied from the default-branch worktree.

    Example:
        gw add feat/new-feature
        gw add feat/api .env config/secrets.json
        gw add hotfix --from release
    """
    config, root = get_loaded_config()
    manager = get_worktree_manager(root)

    variables = HookVariables(
        worktree=name,
        worktree_path=str(resolve_worktree_path(root, name)),
        git_root=str(root),
        branch=name,
    )
    hooks = config.checkout_hooks()

    if hooks.pre:
        console.print("[bold]Running pre-checkout hooks...[/bold]")
        _, ok = execute_hooks(hooks.pre, root, variables, "pre-checkout")
        if not ok:
            raise click.ClickException("Pre-checkout hook failed, worktree not created")

    try:
        with console.status(f"[bold blue]Creating worktree '{name}'..."):
            worktree = manager.create(
                name,
                base_branch=base_branch or config.default_branch,
                force=force,
                strict_base=base_branch is not None,
            )
    except WorktreeError as e:
        raise click.ClickException(str(e)) from e

    console.print()
    console.print("[bold green]Worktree created successfully!")
    console.print(f"[bold]Branch:[/bold]  {worktree.branch}")
    console.print(f"[bold]Path:[/bold]    {worktree.path}")
    console.print(f"[bold]Commit:[/bold]  {worktree.short_head}")

    files_to_copy = list(files) or config.auto_copy_files
    if files_to_copy:
        source_path = _worktree_dir(manager, root, config.default_branch)
        if not source_path.is_dir():
            console.print(
                f"[yellow]Warning: no worktree for '{config.default_branch}', files not copied[/yellow]"
            )
        else:
            console.print()
            for result in copy_files(source_path, worktree.path, files_to_copy):
                _print_copy_result(result.success, result.message)

    if hooks.post:
        console.print()
        console.print("[bold]Running post-checkout hooks...[/bold]")
        _, ok = execute_hooks(
            hooks.post, worktree.path, variables, "post-checkout", abort_on_failure=False
        )
        if not ok:
            console.print("[yellow]Warning: some post-checkout hooks failed[/yellow]")

    console.print()
    console.print(f"[dim]cd {worktree.path}[/dim]")

    auto_clean_after_command(manager)


@main.command("list")
def list_worktrees() -> None:
    """List all worktrees for this repository.

    Example:
        gw list
    """
    _, root = get_loaded_config()
    manager = get_worktree_manager(root)

    try:
        worktrees = manager.list_worktrees()
    except WorktreeError as e:
        raise click.ClickException(str(e)) from e

    if not worktrees:
        console.print("[yellow]No worktrees found.[/yellow]")
        return

    table = Table(title="Git Worktrees", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Branch", style="green")
    table.add_column("Commit", style="dim")
    table.add_column("Path")
    table.add_column("Status", justify="center")

    for wt in worktrees:
        if wt.bare:
            status = "[blue]bare[/blue]"
        elif wt.detached:
            status = "[yellow]detached[/yellow]"
        elif wt.locked:
            status = "[red]locked[/red]"
        else:
            status = "[green]active[/green]"

        table.add_row(wt.name, wt.branch, wt.short_head, str(wt.path), status)

    console.print()
    console.print(table)
    console.print()

    auto_clean_after_command(manager)


@main.command("remove")
@click.argument("identifier")
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Force removal even if the worktree is dirty or locked.",
)
def remove_worktree(identifier: str, force: bool) -> None:
    """Remove a worktree by name, branch, or path.

    Example:
        gw remove feat/old-feature
        gw remove --force feat/experiment
    """
    _, root = get_loaded_config()
    manager = get_worktree_manager(root)

    try:
        worktree = manager.get(identifier)
    except WorktreeError as e:
        raise click.ClickException(str(e)) from e

    if worktree.path.resolve() == Path(root).resolve():
        raise click.ClickException("Cannot remove the main worktree")

    inside = is_path_inside(Path.cwd(), worktree.path)

    try:
        with console.status(f"[bold red]Removing worktree '{identifier}'..."):
            manager.remove_worktree(worktree.path, force=force)
    except WorktreeError as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[green]Worktree \"{identifier}\" removed successfully[/green]")

    if inside:
        console.print()
        console.print(
            "[yellow]You removed the current worktree. "
            "Your shell is now in a non-existent directory.[/yellow]"
        )
        console.print('  Navigate to the git root by running: [bold]cd "$(gw root)"[/bold]')


@main.command("copy")
@click.argument("target")
@click.argument("files", nargs=-1, required=True)
@click.option("--from", "source", help="Source worktree (default: the default branch).")
@click.option("-n", "--dry-run", is_flag=True, help="Show what would be copied.")
def copy_command(target: str, files: tuple[str, ...], source: Optional[str], dry_run: bool) -> None:
    """Copy FILES from one worktree into TARGET.

    Example:
        gw copy feat/api .env
        gw copy --from develop feat/api .env config/
    """
    config, root = get_loaded_config()
    manager = get_worktree_manager(root)

    source_name = source or config.default_branch
    source_path = _worktree_dir(manager, root, source_name)
    target_path = _worktree_dir(manager, root, target)

    if not source_path.is_dir():
        raise click.ClickException(f"Source worktree not found: {source_path}")
    if not target_path.is_dir():
        raise click.ClickException(f"Target worktree not found: {target_path}")

    notice = " (DRY RUN)" if dry_run else ""
    console.print(f"Copying from {source_name} to {target}{notice}...")
    console.print()

    results = copy_files(source_path, target_path, list(files), dry_run=dry_run)
    for result in results:
        _print_copy_result(result.success, result.message)

    succeeded = sum(1 for r in results if r.success)
    verb = "Would copy" if dry_run else "Copied"
    console.print()
    console.print(f"Done! {verb} {succeeded}/{len(results)} {'file' if succeeded == 1 else 'files'}")

    if succeeded < len(results):
        sys.exit(1)


@main.command("clean")
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Skip safety checks (uncommitted changes, unpushed commits). May lose data.",
)
@click.option("-n", "--dry-run", is_flag=True, help="Show what would be removed.")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
def clean_worktrees(force: bool, dry_run: bool, yes: bool) -> None:
    """Remove worktrees older than the configured threshold.

    Only worktrees with no uncommitted changes and no unpushed commits are
    removed unless --force is given. The default-branch worktree is never
    removed.

    Example:
        gw clean --dry-run
        gw clean
        gw clean --force --yes
    """
    config, root = get_loaded_config()
    manager = get_worktree_manager(root)
    service = CleanupService(
        manager,
        CleanupConfig(
            stale_threshold_days=config.clean_threshold,
            default_branch=config.default_branch,
        ),
    )

    console.print(f"Checking for worktrees older than {config.clean_threshold} days...")

    try:
        _, candidates = service.analyze(force=force)
    except WorktreeError as e:
        raise click.ClickException(str(e)) from e

    removable = [c for c in candidates if c.can_clean]
    protected = [c for c in candidates if not c.can_clean]

    if protected:
        _print_protected("Skipped worktrees: (protected by safety checks)", protected)

    if not removable:
        console.print("[green]No stale worktrees to clean[/green]")
        if protected:
            console.print("Use [bold]--force[/bold] to remove these (not recommended)")
        return

    _print_removable(removable)

    if dry_run:
        console.print("[blue]Dry run complete - no worktrees were removed[/blue]")
        return

    if not yes and not click.confirm(f"Remove {len(removable)} worktree(s)?"):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    with console.status("[bold red]Removing stale worktrees..."):
        report = service.cleanup(dry_run=False, force=force)

    _print_report(report)


@main.command("prune")
@click.option(
    "--clean",
    is_flag=True,
    help="Also remove every worktree with no uncommitted changes and no unpushed commits, whatever its age.",
)
@click.option("-n", "--dry-run", is_flag=True, help="Show what would be pruned or removed.")
@click.option("-f", "--force", is_flag=True, help="Skip the confirmation prompt (with --clean).")
@click.option("-v", "--verbose", is_flag=True, help="Show git output and each removal.")
def prune_worktrees(clean: bool, dry_run: bool, force: bool, verbose: bool) -> None:
    """Prune administrative data of worktrees whose directory is gone.

    With --clean, also remove every worktree that is safe to delete. Unlike
    gw clean this ignores age. The default-branch worktree and the current
    worktree are never removed.

    Example:
        gw prune
        gw prune --clean --dry-run
        gw prune --clean --force
    """
    config, root = get_loaded_config()
    manager = get_worktree_manager(root)

    try:
        output = manager.prune(dry_run=dry_run, verbose=verbose)
    except WorktreeError as e:
        raise click.ClickException(str(e)) from e

    if output:
        console.print(output, markup=False)
    if not clean:
        console.print("[green]Pruned stale worktree metadata[/green]")
        return

    try:
        current_path = WorktreeManager.worktree_root(Path.cwd())
    except WorktreeError:
        current_path = None

    service = CleanupService(
        manager,
        CleanupConfig(
            default_branch=config.default_branch,
            ignore_age=True,
            current_path=current_path,
        ),
    )

    console.print("Analyzing worktrees for cleaning...")
    try:
        _, candidates = service.analyze()
    except WorktreeError as e:
        raise click.ClickException(str(e)) from e

    removable = [c for c in candidates if c.can_clean]
    protected = [c for c in candidates if not c.can_clean]

    if not removable:
        console.print("[green]No worktrees to clean[/green]")
        if protected:
            _print_protected("Protected worktrees:", protected)
        return

    _print_removable(removable)
    if protected:
        _print_protected("Protected worktrees:", protected)

    if dry_run:
        console.print("[blue]Dry run complete - no worktrees were removed[/blue]")
        return

    if not force and not click.confirm(f"Remove {len(removable)} worktree(s)?", default=True):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    with console.status("[bold red]Removing worktrees..."):
        report = service.cleanup(dry_run=False)

    if verbose:
        for path in report.cleaned_paths:
            console.print(f"  [green]✓[/green] Removed {path}")
    _print_report(report)


@main.command("update")
@click.option(
    "--from",
    "source_branch",
    help="Branch to update from (default: the configured default branch).",
)
@click.option("--merge", is_flag=True, help="Merge the branch in.")
@click.option("--rebase", is_flag=True, help="Rebase onto the branch.")
@click.option("--remote", default="origin", show_default=True, help="Remote to fetch from.")
@click.option("-f", "--force", is_flag=True, help="Update even with uncommitted changes.")
@click.option("-n", "--dry-run", is_flag=True, help="Show what would be done.")
def update_worktree(
    source_branch: Optional[str],
    merge: bool,
    rebase: bool,
    remote: str,
    force: bool,
    dry_run: bool,
) -> None:
    """Update the current worktree with the latest default branch.

    The branch is fetched first. The strategy comes from --merge/--rebase,
    then the configured updateStrategy, and is merge otherwise.

    Example:
        gw update
        gw update --rebase
        gw update --from develop
    """
    if merge and rebase:
        raise click.UsageError("Cannot use both --merge and --rebase. Please choose one.")

    config, root = get_loaded_config()
    manager = get_worktree_manager(root)

    if merge:
        strategy = UpdateStrategy.MERGE
    elif rebase:
        strategy = UpdateStrategy.REBASE
    else:
        strategy = config.update_strategy or UpdateStrategy.MERGE
    target = source_branch or config.default_branch

    try:
        worktree_path = WorktreeManager.worktree_root(Path.cwd())
    except WorktreeError as e:
        raise click.ClickException(str(e)) from e

    if WorktreeManager.is_detached(worktree_path):
        raise click.ClickException(
            "Cannot update: currently in detached HEAD state. Checkout a branch first."
        )

    if manager.has_uncommitted_changes(worktree_path):
        if not force:
            raise click.ClickException(
                f"Cannot {strategy.value}: uncommitted changes detected. "
                "Commit or stash them first, or use --force (not recommended)."
            )
        console.print("[yellow]Proceeding with uncommitted changes due to --force[/yellow]")

    console.print(f"Fetching latest [bold]{target}[/bold] from [bold]{remote}[/bold]...")
    try:
        start_point = manager.fetch_start_point(target, remote, strict=source_branch is not None)
    except WorktreeError as e:
        raise click.ClickException(str(e)) from e

    branch = WorktreeManager.branch_of(worktree_path)
    if strategy is UpdateStrategy.MERGE:
        operation = f"Merging [bold]{start_point}[/bold] into [bold]{branch}[/bold]"
    else:
        operation = f"Rebasing [bold]{branch}[/bold] onto [bold]{start_point}[/bold]"

    if dry_run:
        console.print(f"[blue]Would perform:[/blue] {operation}")
        return

    console.print(f"{operation}...")
    result = manager.update_worktree(worktree_path, start_point, strategy.value)

    if result.up_to_date:
        console.print(f"[blue]Already up to date with {start_point}[/blue]")
    elif result.success:
        console.print(
            f"[bold green]Updated {branch} with latest changes from {target}[/bold green]"
        )
        if result.files_changed:
            noun = "file" if result.files_changed == 1 else "files"
            console.print(f"[dim]{result.files_changed} {noun} changed[/dim]")
    elif result.conflicted:
        abort = f"git {strategy.value} --abort"
        resume = "git commit" if strategy is UpdateStrategy.MERGE else "git rebase --continue"
        console.print(f"[red]{result.message}[/red]")
        console.print("Resolve conflicts manually, then:")
        console.print(f"  git add <resolved-files> && {resume}")
        console.print(f"Or abort with: [bold]{abort}[/bold]")
        sys.exit(1)
    else:
        raise click.ClickException(result.message)


@main.command("root")
def show_root() -> None:
    """Print the repository root.

    Example:
        cd "$(gw root)"
    """
    _, root = get_loaded_config()
    click.echo(root)


def _worktree_dir(manager: WorktreeManager, root: Path, name: str) -> Path:
    """Directory of a worktree given its branch, name, or path."""
    try:
        worktree = manager.find(name)
    except WorktreeError:
        worktree = None
    if worktree:
        return worktree.path
    return resolve_worktree_path(root, name)


def _print_copy_result(success: bool, message: str) -> None:
    if success:
        console.print(f"  [green]✓[/green] {message}")
    else:
        console.print(f"  [yellow]⚠[/yellow] {message}")


def _print_removable(worktrees: list[StaleWorktree]) -> None:
    console.print()
    console.print("[bold]Worktrees to remove:[/bold]")
    for wt in worktrees:
        console.print(f"  [red]✗[/red] {wt.display_name} [dim]({wt.age_days}d, {wt.path})[/dim]")
    console.print()


def _print_protected(title: str, worktrees: list[StaleWorktree]) -> None:
    console.print()
    console.print(f"[bold]{title}[/bold]")
    for wt in worktrees:
        console.print(f"  [yellow]⚠[/yellow] {wt.display_name} - {wt.reason}")


def _print_report(report: CleanupReport) -> None:
    if report.worktrees_cleaned:
        console.print(f"[green]Removed {report.worktrees_cleaned} worktree(s)[/green]")
    for error in report.errors:
        console.print(f"[red]{error}[/red]", markup=False)


if __name__ == "__main__":
    main()
