"""Command-line interface for the assertion migration tool.

This module defines the CLI commands of the ``splurge-assert-migrate``
application. It uses ``typer`` to expose the program entrypoint while
delegating the work to the programmatic API in
:mod:`splurge_assert_migrate.main`, so the same logic can be used from
Python code or the CLI.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
from typing import cast

import typer

from . import main as main_module
from .cli_helpers import USAGE, build_config, create_event_bus, describe_rule, setup_logging_with_level
from .context import ContextManager, MigrationConfig
from .engine.engine import ENGINE_HELP
from .report import RunReport
from .rules.catalog import CATALOG, validate_catalog
from .rules.families import ARITY_VARIANTS

app = typer.Typer(
    name="splurge-assert-migrate",
    help="Migrate testify-style assertion calls to the testutil assertion modules",
    add_completion=False,
)

logger = logging.getLogger(__name__)


@app.command("migrate")
def migrate(
    packages: list[str] | None = typer.Argument(None, help="Packages to rewrite: names, directories or globs"),
    transitive: bool = typer.Option(
        False, "--transitive", help="Also rewrite every package that imports a requested one", is_flag=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Report rejected candidate calls", is_flag=True),
    root_directory: str | None = typer.Option(None, "--root", "-r", help="Workspace root directory"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report matches without writing files", is_flag=True),
    format_output: bool = typer.Option(
        False, "--format", help="Format rewritten files with isort and black", is_flag=True
    ),
    config_file: str | None = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
    engine_help: bool = typer.Option(
        False, "--engine-help", help="Show the rewrite engine help and usage", is_flag=True
    ),
) -> None:
    """Rewrite assertion calls in PACKAGES.

    Args:
        packages: Package patterns to rewrite.
        transitive: Include every package that transitively imports one of ``packages``.
        verbose: Report why candidate calls were not rewritten.
        root_directory: Root the package patterns are resolved against.
        dry_run: Report matches without writing files.
        format_output: Format rewritten files with isort and black.
        config_file: YAML configuration file providing defaults.
        log_level: Logging level override.
        engine_help: Print the engine help and usage to stderr and exit.
    """
    if engine_help:
        typer.echo(ENGINE_HELP, err=True)
        typer.echo(USAGE, err=True)
        raise typer.Exit(code=2)

    if not packages:
        typer.echo(USAGE, err=True)
        raise typer.Exit(code=1)

    base_config = MigrationConfig()
    if config_file is not None:
        config_result = ContextManager.load_config_from_file(config_file)
        if not config_result.is_success():
            typer.echo(f"Error loading configuration file: {config_result.error}", err=True)
            raise typer.Exit(code=1)
        base_config = cast(MigrationConfig, config_result.data)
        logger.info(f"Loaded configuration from: {config_file}")

    config = build_config(
        base_config,
        root_directory=root_directory,
        transitive=transitive,
        verbose=verbose,
        dry_run=dry_run,
        format_output=format_output,
        log_level=log_level.upper() if log_level else None,
    )
    setup_logging_with_level("DEBUG" if config.verbose else config.log_level)

    result = main_module.migrate(packages, config, event_bus=create_event_bus())
    if result.is_error():
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(code=1)

    report = cast(RunReport, result.data)
    for warning in result.warnings or []:
        logger.warning(warning)
    suffix = " (dry run)" if report.dry_run else ""
    logger.info(f"{report.total_matches} matches in {report.files_changed} files{suffix}")


@app.command("rules")
def rules() -> None:
    """List the substitution rules and the number of template units they expand to."""
    config = MigrationConfig()
    families = config.rewrite_families()
    for family in families:
        typer.echo(f"[{family.name}] {family.source_path} -> {family.dest_path} as {family.dest_alias}")
        for rule in CATALOG:
            typer.echo(f"  {describe_rule(rule, family)}")
    typer.echo(f"\n{len(CATALOG)} rules, {len(CATALOG) * len(families) * len(ARITY_VARIANTS)} template units")
    for problem in validate_catalog(CATALOG):
        typer.echo(f"warning: {problem}", err=True)


@app.command("version")
def version() -> None:
    """Show the version of splurge-assert-migrate."""
    from . import __version__

    typer.echo(f"splurge-assert-migrate {__version__}")


def main() -> None:
    """Main entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
