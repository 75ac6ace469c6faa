"""Asset Replacer CLI - Main entry point."""

import asyncio
import json
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import DEFAULT_LEDGERS, Settings, load_settings
from .errors import ConfigError, InputRowError
from .ledger import (
    ASSET_COLUMNS,
    ENTRY_COLUMNS,
    REPLACE_COLUMNS,
    REPLACE_FAILURE_HEADER,
    REPLACE_SUCCESS_HEADER,
    Ledger,
    LedgerPair,
    read_rows,
)
from .models import RunSummary

app = typer.Typer(
    name="asset-replacer",
    help="Replace CMS assets behind entries via the Content Management API",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Shared options
# ============================================================================

TOKEN_OPTION = typer.Option(None, "--token", help="Bearer token (or set API_TOKEN)")
SPACE_OPTION = typer.Option(None, "--space-id", help="Space ID (or set SPACE_ID)")
ENVIRONMENT_OPTION = typer.Option(None, "--environment", "-e", help="Environment ID (default: testing_env)")
AUTH_HEADER_OPTION = typer.Option(None, "--auth-header", help="Authorization header name")
SCHEME_OPTION = typer.Option(None, "--scheme", help="Authorization scheme prefix, e.g. Bearer")
TIMEOUT_OPTION = typer.Option(None, "--timeout", help="Per-request HTTP timeout in seconds")
LOCALE_OPTION = typer.Option(None, "--locale", help="Field locale (default: en-US)")
SUCCESS_FILE_OPTION = typer.Option(None, "--success-file", help="Success ledger CSV (appended)")
FAILED_FILE_OPTION = typer.Option(None, "--failed-file", help="Failure ledger CSV (appended)")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Log every request")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False, markup=False)],
        force=True,
    )
    # httpx logs every request at INFO; keep it for --verbose only.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _fail(error: Exception) -> None:
    err_console.print(f"[red]Error: {escape(str(error))}[/red]")
    raise typer.Exit(1)


def _load_settings(**overrides) -> Settings:
    try:
        settings = load_settings(**overrides)
        settings.validate_credentials()
    except ValidationError as e:
        _fail(ConfigError(f"invalid configuration: {e}"))
    except ConfigError as e:
        _fail(e)
    return settings


def _require_csv(csv_path: Path) -> None:
    if not csv_path.is_file():
        _fail(ConfigError(f"open csv: {csv_path}: no such file"))


def _ledger_pair(mode: str, success_file, failed_file, success_header, failure_header) -> LedgerPair:
    default_success, default_failed = DEFAULT_LEDGERS[mode]
    return LedgerPair(
        Ledger(success_file or default_success, success_header),
        Ledger(failed_file or default_failed, failure_header),
    )


def _skip_counter(summary: RunSummary):
    def _on_skip(error: InputRowError) -> None:
        summary.skipped += 1

    return _on_skip


def _print_summary(title: str, summary: RunSummary, ledgers: LedgerPair) -> None:
    table = Table(title=title)
    table.add_column("Rows", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Processed", str(summary.processed))
    table.add_row("Succeeded", f"[green]{summary.succeeded}[/green]")
    table.add_row("Failed", f"[red]{summary.failed}[/red]" if summary.failed else "0")
    table.add_row("Skipped", str(summary.skipped))
    console.print(table)
    console.print(f"[dim]Success ledger: {ledgers.success.path}[/dim]")
    console.print(f"[dim]Failure ledger: {ledgers.failure.path}[/dim]")
    if summary.failed:
        console.print("[yellow]Some rows failed; see the failure ledger for details.[/yellow]")


def _run_with_ledgers(ledgers: LedgerPair, coro_factory) -> RunSummary:
    try:
        with ledgers:
            return asyncio.run(coro_factory())
    except ConfigError as e:
        _fail(e)


# ============================================================================
# Commands
# ============================================================================


@app.command("replace")
def replace(
    csv_path: Path = typer.Option(Path("id.csv"), "--csv", "-c", help="CSV with entry_id,asset_id rows"),
    download_dir: Path = typer.Option(None, "--download-dir", help="Where old asset files are saved"),
    field: str = typer.Option(None, "--field", "-f", help="Entry reference field (default: downloadableFile)"),
    token: str = TOKEN_OPTION,
    space_id: str = SPACE_OPTION,
    environment: str = ENVIRONMENT_OPTION,
    auth_header: str = AUTH_HEADER_OPTION,
    scheme: str = SCHEME_OPTION,
    timeout: float = TIMEOUT_OPTION,
    locale: str = LOCALE_OPTION,
    success_file: Path = SUCCESS_FILE_OPTION,
    failed_file: Path = FAILED_FILE_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Replace each row's asset with a fresh copy and repoint its entry."""
    from .api import CMAClient
    from .pipeline import ReplacementPipeline
    from .transfer import AssetDownloader

    _configure_logging(verbose)
    _require_csv(csv_path)
    settings = _load_settings(
        api_token=token,
        space_id=space_id,
        environment_id=environment,
        auth_header=auth_header,
        auth_scheme=scheme,
        http_timeout=timeout,
        locale=locale,
        reference_field=field,
        download_dir=download_dir,
    )
    config = settings.to_client_config()

    summary = RunSummary()
    rows = read_rows(csv_path, REPLACE_COLUMNS, on_skip=_skip_counter(summary))
    ledgers = _ledger_pair("replace", success_file, failed_file, REPLACE_SUCCESS_HEADER, REPLACE_FAILURE_HEADER)

    async def _run():
        async with CMAClient(config) as cma:
            async with AssetDownloader(settings.download_dir, timeout_seconds=config.timeout) as downloader:
                return await ReplacementPipeline(cma, downloader, ledgers).run(rows, summary)

    summary = _run_with_ledgers(ledgers, _run)
    _print_summary("Asset Replacement", summary, ledgers)


@app.command("list")
def list_entries(
    csv_path: Path = typer.Option(None, "--csv", "-c", help="CSV with entry_id rows (default: all entries)"),
    content_type: str = typer.Option(None, "--content-type", help="Only entries of this content type"),
    limit: int = typer.Option(None, "--limit", "-l", help="Max entries when listing the environment"),
    field: str = typer.Option(None, "--field", "-f", help="Entry reference field (default: downloadableFile)"),
    token: str = TOKEN_OPTION,
    space_id: str = SPACE_OPTION,
    environment: str = ENVIRONMENT_OPTION,
    auth_header: str = AUTH_HEADER_OPTION,
    scheme: str = SCHEME_OPTION,
    timeout: float = TIMEOUT_OPTION,
    locale: str = LOCALE_OPTION,
    success_file: Path = SUCCESS_FILE_OPTION,
    failed_file: Path = FAILED_FILE_OPTION,
    json_output: bool = typer.Option(False, "--json", "-j", help="Also print rows as JSON"),
    verbose: bool = VERBOSE_OPTION,
):
    """List entries with their linked asset and file."""
    from .api import CMAClient
    from .modes import ListHandler, run_listing, run_mode

    _configure_logging(verbose)
    if csv_path is not None:
        _require_csv(csv_path)
    settings = _load_settings(
        api_token=token,
        space_id=space_id,
        environment_id=environment,
        auth_header=auth_header,
        auth_scheme=scheme,
        http_timeout=timeout,
        locale=locale,
        reference_field=field,
    )
    config = settings.to_client_config()

    summary = RunSummary()
    ledgers = _ledger_pair(
        "list", success_file, failed_file, ListHandler.success_header, ListHandler.failure_header
    )

    async def _run():
        async with CMAClient(config) as cma:
            handler = ListHandler(cma)
            if csv_path is None:
                return await run_listing(
                    handler, ledgers, content_type=content_type, max_entries=limit, summary=summary
                )
            rows = read_rows(csv_path, ENTRY_COLUMNS, on_skip=_skip_counter(summary))
            return await run_mode(handler, rows, ledgers, summary)

    summary = _run_with_ledgers(ledgers, _run)
    if json_output:
        console.print_json(json.dumps({"summary": summary.__dict__}, default=str))
    _print_summary("Entries", summary, ledgers)


@app.command("publish-drafts")
def publish_drafts(
    csv_path: Path = typer.Option(..., "--csv", "-c", help="CSV with entry_id rows"),
    token: str = TOKEN_OPTION,
    space_id: str = SPACE_OPTION,
    environment: str = ENVIRONMENT_OPTION,
    auth_header: str = AUTH_HEADER_OPTION,
    scheme: str = SCHEME_OPTION,
    timeout: float = TIMEOUT_OPTION,
    success_file: Path = SUCCESS_FILE_OPTION,
    failed_file: Path = FAILED_FILE_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Publish entries that are drafts or carry unpublished changes."""
    from .api import CMAClient
    from .modes import PublishDraftsHandler, run_mode

    _configure_logging(verbose)
    _require_csv(csv_path)
    settings = _load_settings(
        api_token=token,
        space_id=space_id,
        environment_id=environment,
        auth_header=auth_header,
        auth_scheme=scheme,
        http_timeout=timeout,
    )
    config = settings.to_client_config()

    summary = RunSummary()
    rows = read_rows(csv_path, ENTRY_COLUMNS, on_skip=_skip_counter(summary))
    ledgers = _ledger_pair(
        "publish-drafts",
        success_file,
        failed_file,
        PublishDraftsHandler.success_header,
        PublishDraftsHandler.failure_header,
    )

    async def _run():
        async with CMAClient(config) as cma:
            return await run_mode(PublishDraftsHandler(cma), rows, ledgers, summary)

    summary = _run_with_ledgers(ledgers, _run)
    _print_summary("Publish Drafts", summary, ledgers)


@app.command("archive-status")
def archive_status(
    csv_path: Path = typer.Option(..., "--csv", "-c", help="CSV with asset_id rows"),
    token: str = TOKEN_OPTION,
    space_id: str = SPACE_OPTION,
    environment: str = ENVIRONMENT_OPTION,
    auth_header: str = AUTH_HEADER_OPTION,
    scheme: str = SCHEME_OPTION,
    timeout: float = TIMEOUT_OPTION,
    locale: str = LOCALE_OPTION,
    success_file: Path = SUCCESS_FILE_OPTION,
    failed_file: Path = FAILED_FILE_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Report whether each asset is archived, published or a draft."""
    from .api import CMAClient
    from .modes import ArchiveStatusHandler, run_mode

    _configure_logging(verbose)
    _require_csv(csv_path)
    settings = _load_settings(
        api_token=token,
        space_id=space_id,
        environment_id=environment,
        auth_header=auth_header,
        auth_scheme=scheme,
        http_timeout=timeout,
        locale=locale,
    )
    config = settings.to_client_config()

    summary = RunSummary()
    rows = read_rows(csv_path, ASSET_COLUMNS, on_skip=_skip_counter(summary))
    ledgers = _ledger_pair(
        "archive-status",
        success_file,
        failed_file,
        ArchiveStatusHandler.success_header,
        ArchiveStatusHandler.failure_header,
    )

    async def _run():
        async with CMAClient(config) as cma:
            return await run_mode(ArchiveStatusHandler(cma), rows, ledgers, summary)

    summary = _run_with_ledgers(ledgers, _run)
    _print_summary("Archive Status", summary, ledgers)


@app.command("config")
def show_config(
    token: str = TOKEN_OPTION,
    space_id: str = SPACE_OPTION,
    environment: str = ENVIRONMENT_OPTION,
):
    """Show the effective connection settings (token masked)."""
    settings = _load_settings(api_token=token, space_id=space_id, environment_id=environment)
    config = settings.to_client_config()

    table = Table(title="Asset Replacer Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in config.to_dict().items():
        table.add_row(key, str(value))
    table.add_row("download_dir", str(settings.download_dir))
    table.add_row("poll", f"{settings.poll_attempts} x {settings.poll_interval}s")
    console.print(table)


if __name__ == "__main__":
    app()
