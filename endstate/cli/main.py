#!/usr/bin/env python3
"""
Command-line interface for endstate.

Provides commands to restore configuration from a manifest, revert the last
restore, inspect restore journals and reconcile installed packages.
"""

from __future__ import annotations

import logging
import traceback
from pathlib import Path

import typer

from endstate.cli.logger import CLILogger
from endstate.config import EndstateSettings, get_settings
from endstate.drivers import build_default_registry
from endstate.exceptions import EndstateError
from endstate.schemas import InstallOptions, RestoreResult, RevertResult
from endstate.services import InstallService, JournalStore, RestoreService, RevertService, load_manifest

app = typer.Typer(
    name='endstate',
    help='Restore machine configuration from a manifest, with journaled revert',
    add_completion=False,
)
journal_app = typer.Typer(help='Inspect restore journals', add_completion=False)
app.add_typer(journal_app, name='journal')

_STATUS_COLORS = {
    'success': typer.colors.GREEN,
    'partial': typer.colors.YELLOW,
    'failed': typer.colors.RED,
    'nothing_to_revert': typer.colors.YELLOW,
}


def _settings() -> EndstateSettings:
    """Fresh settings per invocation so environment changes are honored."""
    try:
        return get_settings()
    except (ValueError, FileNotFoundError) as e:
        typer.secho(f'Error: Invalid configuration: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )


def _fail(message: str, verbose: bool = False) -> typer.Exit:
    typer.secho(f'Error: {message}', fg=typer.colors.RED, err=True)
    if verbose:
        traceback.print_exc()
    return typer.Exit(1)


def _print_restore_summary(result: RestoreResult) -> None:
    label = 'Dry run' if result.dry_run else 'Restore'
    typer.secho(f'{label} {result.status}: run {result.run_id}', fg=_STATUS_COLORS[result.status])
    typer.echo(f'  Restored:               {result.restored}')
    typer.echo(f'  Skipped (up to date):   {result.skipped_up_to_date}')
    typer.echo(f'  Skipped (exists):       {result.skipped_exists}')
    typer.echo(f'  Skipped (no source):    {result.skipped_missing_source}')
    typer.echo(f'  Failed:                 {result.failed}')
    if result.warnings:
        typer.echo(f'  Warnings:               {result.warnings}')
    if result.journal_path:
        typer.echo(f'  Journal: {result.journal_path}')
    for entry in result.journal.entries:
        if entry.action == 'failed' or entry.error:
            typer.secho(f'  ✗ {entry.target}: {entry.error}', fg=typer.colors.RED)


def _print_revert_summary(result: RevertResult) -> None:
    if result.status == 'nothing_to_revert':
        typer.secho('Nothing to revert: no restore journal found', fg=typer.colors.YELLOW)
        return
    label = 'Dry run' if result.dry_run else 'Revert'
    typer.secho(f'{label} {result.status}: run {result.run_id}', fg=_STATUS_COLORS[result.status])
    typer.echo(f'  Restored from backup: {result.reverted}')
    typer.echo(f'  Deleted:              {result.deleted}')
    typer.echo(f'  Unchanged:            {result.no_op}')
    typer.echo(f'  Failed:               {result.failed}')
    for entry in result.entries:
        if entry.action == 'failed':
            typer.secho(f'  ✗ {entry.target_path}: {entry.error}', fg=typer.colors.RED)
        elif entry.safety_backup_path:
            typer.echo(f'  Previous content of {entry.target_path} saved to {entry.safety_backup_path}')


@app.command()
def restore(
    manifest: Path = typer.Argument(..., help='Manifest file (JSON or JSONC)'),
    enable_restore: bool = typer.Option(
        False, '--enable-restore', help='Required opt-in: restore modifies files on this machine'
    ),
    dry_run: bool = typer.Option(False, '--dry-run', '-n', help='Show what would change without writing'),
    export_root: Path | None = typer.Option(
        None, '--export-root', help='Snapshot directory searched for sources before the manifest directory'
    ),
    json_output: bool = typer.Option(False, '--json', help='Print the full result as JSON'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Restore configuration files declared in a manifest.

    Every non-dry run writes a journal that `endstate revert` can undo.

    Examples:
        endstate restore manifest.jsonc --enable-restore --dry-run
        endstate restore manifest.jsonc --enable-restore --export-root ./snapshot
    """
    _configure_logging(verbose)
    settings = _settings()
    logger = CLILogger(verbose=verbose)

    try:
        loaded = load_manifest(manifest)
        service = RestoreService(
            backup_root=settings.backup_root,
            journal_store=JournalStore(settings.journal_dir),
            mtime_tolerance=settings.MTIME_TOLERANCE_SECONDS,
        )
        result = service.restore(
            loaded.restore,
            manifest_path=manifest,
            export_root=export_root,
            dry_run=dry_run,
            enabled=enable_restore,
            logger=logger,
        )
    except EndstateError as e:
        raise _fail(str(e), verbose)

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
    else:
        _print_restore_summary(result)

    if result.status == 'failed':
        raise typer.Exit(1)
    if result.status == 'partial':
        raise typer.Exit(2)


@app.command()
def revert(
    run_id: str | None = typer.Option(None, '--run', help='Run id (full or prefix); defaults to the latest run'),
    dry_run: bool = typer.Option(False, '--dry-run', '-n', help='Show what would be undone without writing'),
    json_output: bool = typer.Option(False, '--json', help='Print the full result as JSON'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Undo the most recent restore using its journal.

    Examples:
        endstate revert --dry-run
        endstate revert --run 019b53ff
    """
    _configure_logging(verbose)
    settings = _settings()
    logger = CLILogger(verbose=verbose)
    store = JournalStore(settings.journal_dir)

    try:
        journal = store.load_run(run_id) if run_id else None
        result = RevertService(settings.backup_root, store).revert(
            journal=journal,
            journal_path=store.path_for(journal.run_id) if journal is not None else None,
            dry_run=dry_run,
            logger=logger,
        )
    except EndstateError as e:
        raise _fail(str(e), verbose)

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
    else:
        _print_revert_summary(result)

    if result.status in ('failed', 'partial'):
        raise typer.Exit(1)


@journal_app.command('list')
def journal_list() -> None:
    """List restore journals, newest first."""
    store = JournalStore(_settings().journal_dir)
    paths = store.list_journals()
    if not paths:
        typer.secho('No restore journals found', fg=typer.colors.YELLOW)
        return

    for path in paths:
        try:
            journal = store.load(path)
        except EndstateError as e:
            typer.secho(f'{path.name}  (unreadable: {e})', fg=typer.colors.RED)
            continue
        restored = sum(1 for entry in journal.entries if entry.action == 'restored')
        typer.echo(
            f'{journal.run_id}  {journal.timestamp_utc:%Y-%m-%d %H:%M:%S}  '
            f'{len(journal.entries)} entries, {restored} restored  {journal.manifest_path}'
        )


@journal_app.command('show')
def journal_show(
    run_id: str | None = typer.Argument(None, help='Run id (full or prefix); defaults to the latest run'),
) -> None:
    """Print a restore journal as JSON."""
    store = JournalStore(_settings().journal_dir)
    try:
        if run_id:
            journal = store.load_run(run_id)
        else:
            latest = store.latest()
            if latest is None:
                typer.secho('No restore journals found', fg=typer.colors.YELLOW)
                raise typer.Exit(1)
            journal = store.load(latest)
    except EndstateError as e:
        raise _fail(str(e))

    typer.echo(journal.model_dump_json(indent=2, by_alias=True))


@app.command()
def install(
    manifest: Path | None = typer.Argument(None, help='Manifest whose apps should be installed'),
    packages: list[str] | None = typer.Option(None, '--package', '-p', help='Package id (repeatable)'),
    dry_run: bool = typer.Option(False, '--dry-run', '-n', help='Only report what is installed'),
    driver: str | None = typer.Option(None, '--driver', help='Driver name (default: platform default)'),
    workers: int | None = typer.Option(None, '--workers', min=1, max=32, help='Concurrent installs'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Install every manifest app that is not already installed.

    Examples:
        endstate install manifest.jsonc --dry-run
        endstate install -p Git.Git -p Microsoft.VisualStudioCode
    """
    _configure_logging(verbose)
    settings = _settings()
    logger = CLILogger(verbose=verbose)

    try:
        package_ids = list(load_manifest(manifest).apps) if manifest is not None else []
        package_ids.extend(packages or [])
        if not package_ids:
            typer.secho('Nothing to install: no apps in manifest and no --package given', fg=typer.colors.YELLOW)
            return

        registry = build_default_registry(preferred=driver or settings.DRIVER)
        service = InstallService(registry, max_workers=workers or settings.INSTALL_WORKERS)
        summary = service.install_all(package_ids, options=InstallOptions(), dry_run=dry_run, logger=logger)
    except EndstateError as e:
        raise _fail(str(e), verbose)

    for result in summary.results:
        color = {
            'success': typer.colors.GREEN,
            'already_installed': None,
            'user_denied': typer.colors.YELLOW,
            'error': typer.colors.RED,
        }[result.outcome]
        version = f' {result.version}' if result.version else ''
        message = f'  ({result.message})' if result.message else ''
        typer.secho(f'{result.package_id}{version}: {result.outcome}{message}', fg=color)

    typer.echo(
        f'\n{summary.driver}: {summary.succeeded} installed, {summary.already_installed} already installed, '
        f'{summary.user_denied} denied, {summary.errors} failed'
    )
    if not summary.ok:
        raise typer.Exit(1)


@app.command()
def drivers(
    driver: str | None = typer.Option(None, '--driver', help='Driver name (default: platform default)'),
) -> None:
    """List installer drivers and which one is active."""
    settings = _settings()
    registry = build_default_registry(preferred=driver or settings.DRIVER)
    try:
        active = registry.active.name
    except EndstateError as e:
        typer.secho(f'No active driver: {e}', fg=typer.colors.YELLOW)
        active = None

    for name in registry.names:
        available = 'available' if registry.get(name).test_available() else 'not found'
        marker = '*' if name == active else ' '
        typer.echo(f'{marker} {name:<8} {available}')


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
