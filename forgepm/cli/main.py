"""Main CLI application for forgepm."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from forgepm import __version__
from forgepm.catalog.base import AddonCatalog
from forgepm.catalog.local import CatalogError, LocalCatalog
from forgepm.config.parser import (
    CONFIG_FILE_NAME,
    ConfigError,
    find_project_root,
    load_project_config,
    save_project_config,
)
from forgepm.config.schemas import Change, InstallationResult, PlacementIssue, ProjectConfig
from forgepm.core.context import ProjectContextService
from forgepm.core.installer import AddonInstaller

# Create the main Typer app
app = typer.Typer(
    name="forgepm",
    help="Addon manager for multi-module Maven projects",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

# Set up logger for the forgepm package
logger = logging.getLogger("forgepm")

PathOption = Annotated[
    Path | None,
    typer.Option(
        "--path",
        "-p",
        help="Project root directory (defaults to the directory holding forgepm.yaml, else cwd)",
    ),
]
CatalogOption = Annotated[
    Path | None,
    typer.Option(
        "--catalog",
        "-c",
        help="Addon manifest (JSON or YAML); overrides the catalog in forgepm.yaml",
    ),
]


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)

    # Only add handler if not already configured
    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]\u2713[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]\u26a0[/yellow] {message}")


def resolve_project_root(path: Path | None) -> Path:
    if path is not None:
        return path.resolve()
    return find_project_root() or Path.cwd()


def load_catalog(project_root: Path, catalog: Path | None) -> AddonCatalog:
    """Load the addon catalog from --catalog or the project's forgepm.yaml."""
    try:
        if catalog is not None:
            return LocalCatalog.from_file(catalog)

        if (project_root / CONFIG_FILE_NAME).exists():
            config = load_project_config(project_root)
            if config.catalog:
                return LocalCatalog.from_file(project_root / config.catalog)
    except (ConfigError, CatalogError) as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    print_error("No addon catalog configured")
    print_error(f"Pass --catalog or run 'forgepm init --catalog <manifest>' to create {CONFIG_FILE_NAME}")
    raise typer.Exit(1)


def get_installer(project_root: Path, catalog: Path | None) -> AddonInstaller:
    context_service = ProjectContextService(load_catalog(project_root, catalog))
    context_service.set_project_root(project_root)
    return AddonInstaller(context_service.catalog, context_service)


def describe_change(change: Change) -> str:
    """Render a change record as one line."""
    if change.action == "added_dependency":
        return f"{change.file}: added dependency {change.coordinates}"
    if change.action == "removed_dependency":
        return f"{change.file}: removed dependency {change.coordinates}"
    if change.action == "added_property":
        return f"{change.file}: added property {change.property} = {change.value}"
    if change.action == "updated_property":
        return f"{change.file}: updated property {change.property} {change.old_value} -> {change.value}"
    return f"{change.file}: removed property {change.property}"


def describe_issue(issue: PlacementIssue) -> str:
    """Render a placement issue as one line."""
    if issue.duplicate:
        return f"{issue.coordinates} is declared more than once in {issue.actual_pom}"
    if issue.actual_pom == issue.expected_pom:
        return (
            f"{issue.coordinates} has scope {issue.actual_scope} in {issue.actual_pom} "
            f"(expected {issue.expected_scope})"
        )
    return f"{issue.coordinates} is in {issue.actual_pom} (expected {issue.expected_pom})"


def report_result(result: InstallationResult, done_message: str) -> None:
    """Print an operation result; exits with code 1 when it failed."""
    if not result.success:
        for error in result.errors:
            print_error(f"{error.code}: {error.message}")
        raise typer.Exit(1)

    print_success(done_message)
    if not result.changes:
        console.print("  No changes needed")
    for change in result.changes:
        console.print(f"  {describe_change(change)}")
    for warning in result.warnings:
        print_warning(f"  {warning}")


@app.callback()
def callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v info, -vv debug)",
        ),
    ] = 0,
) -> None:
    """forgepm - install and repair addons in multi-module Maven projects."""
    setup_logging(verbose)


@app.command()
def version() -> None:
    """Show the forgepm version."""
    console.print(f"forgepm {__version__}")


@app.command()
def init(
    catalog: Annotated[
        str | None,
        typer.Option(
            "--catalog",
            "-c",
            help="Addon manifest path, relative to the project root",
        ),
    ] = None,
    project_name: Annotated[
        str | None,
        typer.Option(
            "--name",
            "-n",
            help="Project name (defaults to directory name)",
        ),
    ] = None,
    path: PathOption = None,
) -> None:
    """Initialize forgepm in a Maven project.

    Creates a forgepm.yaml configuration file in the project root.
    """
    path = Path.cwd() if path is None else path.resolve()

    if not path.exists():
        print_error(f"Directory does not exist: {path}")
        raise typer.Exit(1)

    if (path / CONFIG_FILE_NAME).exists():
        print_error(f"Project already initialized in {path}")
        print_error(f"To reinitialize, delete {CONFIG_FILE_NAME} first")
        raise typer.Exit(1)

    if not (path / "pom.xml").exists():
        print_warning(f"No pom.xml found in {path}")

    save_project_config(path, ProjectConfig(catalog=catalog, project_name=project_name or path.name))
    print_success("Initialized forgepm project")
    console.print(f"  Created: {path / CONFIG_FILE_NAME}")


@app.command()
def status(path: PathOption = None, catalog: CatalogOption = None) -> None:
    """Show installed addons and their placement issues."""
    project_root = resolve_project_root(path)
    installer = get_installer(project_root, catalog)
    context = installer.context_service.get_project_context()

    console.print(f"Project: {project_root}")
    console.print(f"Platform version: {context.platform_version or 'unknown'}")
    console.print(f"Java version: {context.java_version or 'unknown'}")

    if not context.installed_addons:
        console.print("No addons installed")
        return

    table = Table(title="Installed Addons")
    table.add_column("Addon", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Status")

    for addon_id, installed_version in context.installed_addons.items():
        issues = context.misconfigured_addons.get(addon_id, [])
        state = f"[yellow]{len(issues)} issue(s)[/yellow]" if issues else "[green]ok[/green]"
        table.add_row(addon_id, installed_version or "unknown", state)

    console.print(table)

    for addon_id, issues in context.misconfigured_addons.items():
        console.print()
        print_warning(f"{addon_id} is misconfigured (run 'forgepm fix {addon_id}'):")
        for issue in issues:
            console.print(f"  {describe_issue(issue)}")


@app.command("list")
def list_addons(
    category: Annotated[
        str | None,
        typer.Option("--category", help="Only show addons of this category"),
    ] = None,
    platform: Annotated[
        str | None,
        typer.Option("--platform", help="Only show addons compatible with this platform version"),
    ] = None,
    path: PathOption = None,
    catalog: CatalogOption = None,
) -> None:
    """List addons available in the catalog."""
    addons = load_catalog(resolve_project_root(path), catalog).filter(category=category, platform_version=platform)

    if not addons:
        console.print("No addons found")
        return

    table = Table(title="Available Addons")
    table.add_column("Addon", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Category", style="dim")
    table.add_column("Name")

    for addon in addons:
        table.add_row(addon.id, addon.version, addon.category or "", addon.name or "")

    console.print(table)


@app.command()
def install(
    addon_id: Annotated[str, typer.Argument(help="Addon to install")],
    upgrade: Annotated[
        bool,
        typer.Option(
            "--upgrade",
            "-U",
            help="Upgrade the addon if it is already installed",
        ),
    ] = False,
    path: PathOption = None,
    catalog: CatalogOption = None,
) -> None:
    """Install an addon into the project's POM files."""
    project_root = resolve_project_root(path)
    result = get_installer(project_root, catalog).install(addon_id, project_root, upgrade=upgrade)
    report_result(result, f"{'Upgraded' if upgrade else 'Installed'} {addon_id}")


@app.command()
def upgrade(
    addon_id: Annotated[str, typer.Argument(help="Addon to upgrade")],
    path: PathOption = None,
    catalog: CatalogOption = None,
) -> None:
    """Upgrade an installed addon to the catalog version."""
    project_root = resolve_project_root(path)
    result = get_installer(project_root, catalog).upgrade(addon_id, project_root)
    report_result(result, f"Upgraded {addon_id}")


@app.command()
def uninstall(
    addon_id: Annotated[str, typer.Argument(help="Addon to uninstall")],
    path: PathOption = None,
    catalog: CatalogOption = None,
) -> None:
    """Remove an addon's dependencies and version property from the project."""
    project_root = resolve_project_root(path)
    result = get_installer(project_root, catalog).uninstall(addon_id, project_root)
    report_result(result, f"Uninstalled {addon_id}")


@app.command()
def fix(
    addon_id: Annotated[str, typer.Argument(help="Addon to fix")],
    path: PathOption = None,
    catalog: CatalogOption = None,
) -> None:
    """Move misplaced dependencies of an addon and remove duplicates."""
    project_root = resolve_project_root(path)
    result = get_installer(project_root, catalog).fix(addon_id, project_root)
    report_result(result, f"Fixed {addon_id}")


if __name__ == "__main__":
    app()
