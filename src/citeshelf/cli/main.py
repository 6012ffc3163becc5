"""Command-line interface for citeshelf.

Provides commands to load, search and watch a configured library.
"""

import asyncio
import importlib.metadata
import sys
from pathlib import Path

import click

from citeshelf.audit import AuditLogger
from citeshelf.engine import STATE_CHANGED, LibraryService, load_config
from citeshelf.errors import ConfigurationError
from citeshelf.models import LibraryState, LoadingStatus
from citeshelf.search import DEFAULT_LIMIT
from citeshelf.sources import DirectoryVault

__all__ = ["cli"]

try:
    __version__ = importlib.metadata.version("citeshelf")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.1.0"


def _build_service(
    config_path: str,
    log_path: str | None,
    vault_root: str | None,
) -> tuple[LibraryService, AuditLogger | None]:
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(2)

    logger = AuditLogger(run_id=None, log_path=Path(log_path)) if log_path else None
    vault = DirectoryVault(vault_root) if vault_root else None
    return LibraryService(config, logger=logger, vault=vault), logger


def _describe_state(state: LibraryState) -> str:
    if state.status is LoadingStatus.LOADING and state.progress is not None:
        return f"loading ({state.progress.current}/{state.progress.total})"
    if state.status is LoadingStatus.ERROR:
        return f"error: {state.message}"
    if state.status is LoadingStatus.SUCCESS and state.failed_sources:
        return f"success (failed: {', '.join(state.failed_sources)})"
    return state.status.value


@click.group()
@click.version_option(version=__version__, prog_name="citeshelf")
def cli() -> None:
    """Load, reconcile and search citation libraries.

    Use 'citeshelf COMMAND --help' for command-specific help.
    """


@cli.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--log",
    "log_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append audit events to this JSONL file",
)
@click.option(
    "--vault",
    "vault_root",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Root directory of vault-file databases",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def load(config_path: str, log_path: str | None, vault_root: str | None, verbose: bool) -> None:
    """Load every configured database once and report the result.

    Examples
    --------
        citeshelf load library.json
        citeshelf load library.json --log events.jsonl -v
    """
    service, logger = _build_service(config_path, log_path, vault_root)

    if verbose:
        service.events.subscribe(
            STATE_CHANGED, lambda state: click.echo(f"State: {_describe_state(state)}", err=True)
        )

    async def run() -> None:
        try:
            await service.load()
        finally:
            service.dispose()

    try:
        asyncio.run(run())
    finally:
        if logger:
            logger.close()

    state = service.state
    if state.status is not LoadingStatus.SUCCESS or service.library is None:
        click.secho(f"Error: {state.message}", fg="red", err=True)
        sys.exit(1)

    click.secho(f"✓ Loaded {service.library.size} entries", fg="green")
    report = service.last_report
    if report is not None and report.collisions:
        click.echo(f"Re-keyed {len(report.collisions)} colliding citekeys")
    if state.failed_sources:
        click.secho(f"Failed sources: {', '.join(state.failed_sources)}", fg="yellow")


@cli.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("query")
@click.option(
    "--log",
    "log_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append audit events to this JSONL file",
)
@click.option(
    "--vault",
    "vault_root",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Root directory of vault-file databases",
)
@click.option(
    "--limit",
    "-n",
    type=click.IntRange(min=1),
    default=DEFAULT_LIMIT,
    help=f"Maximum number of results (default: {DEFAULT_LIMIT})",
)
def search(
    config_path: str,
    query: str,
    log_path: str | None,
    vault_root: str | None,
    limit: int,
) -> None:
    """Load the library and print entries matching QUERY.

    Each hit is printed as ``id<TAB>title``.

    Examples
    --------
        citeshelf search library.json "attention is all"
    """
    service, logger = _build_service(config_path, log_path, vault_root)

    async def run() -> list[str]:
        try:
            await service.load()
            return service.search_service.search(query, limit=limit)
        finally:
            service.dispose()

    try:
        ids = asyncio.run(run())
    finally:
        if logger:
            logger.close()

    library = service.library
    if library is None:
        click.secho(f"Error: {service.state.message}", fg="red", err=True)
        sys.exit(1)

    for entry_id in ids:
        entry = library.get(entry_id)
        title = entry.title if entry is not None and entry.title else ""
        click.echo(f"{entry_id}\t{title}")


@cli.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--log",
    "log_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append audit events to this JSONL file",
)
@click.option(
    "--vault",
    "vault_root",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Root directory of vault-file databases",
)
def watch(config_path: str, log_path: str | None, vault_root: str | None) -> None:
    """Load the library and reload it whenever a database changes.

    Runs until interrupted with Ctrl+C.
    """
    service, logger = _build_service(config_path, log_path, vault_root)

    def on_state(state: LibraryState) -> None:
        color = {"success": "green", "error": "red"}.get(state.status.value)
        line = _describe_state(state)
        if state.status is LoadingStatus.SUCCESS and service.library is not None:
            line = f"{line}: {service.library.size} entries"
        click.secho(line, fg=color)

    service.events.subscribe(STATE_CHANGED, on_state)

    async def run() -> None:
        try:
            await service.load()
            await asyncio.Event().wait()
        finally:
            service.dispose()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        click.echo("Stopped watching", err=True)
    finally:
        if logger:
            logger.close()


if __name__ == "__main__":
    cli()
