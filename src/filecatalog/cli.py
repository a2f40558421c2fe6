"""Command line interface for filecatalog."""

from __future__ import annotations

import asyncio
import difflib
import logging
from typing import Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from filecatalog.config import CatalogConfig, ConfigError, ConfigManager, resolve_with_precedence
from filecatalog.crawl import CrawlReport, CrawlService, RootOutcome, RootRequest
from filecatalog.ingestion.models import FileRecord
from filecatalog.store import CatalogStore, StoreError

console = Console()
err_console = Console(stderr=True)


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    raise click.ClickException(message) from original


def _configure_logging(level_name: str, verbose: int) -> None:
    """Install a rich handler on stderr; each ``-v`` lowers the level one step."""
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    level = max(logging.DEBUG, level - 10 * verbose)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_config(cli_overrides: dict[str, Any], *, json_output: bool) -> CatalogConfig:
    overrides = {key: value for key, value in cli_overrides.items() if value is not None}
    try:
        manager = ConfigManager()
        manager.ensure_exists()
        return manager.load(cli_overrides=overrides)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        raise


def _format_summary_line(outcome: RootOutcome) -> str:
    """Return a consistent summary line for one crawled root.

    Args:
        outcome: Outcome of the root's session.

    Returns:
        str: Rich-formatted summary string.
    """

    if not outcome.ok:
        reason = escape(str(outcome.error))
        return f"[red]crawl failed for {escape(outcome.location)}: {reason}[/red]"
    result = outcome.result
    assert result is not None
    metrics = {
        "source": outcome.identifier,
        "entries": result.entries_seen,
        "written": result.records_written,
        "skipped": result.entries_skipped,
        "batches": result.batches,
    }
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]crawl summary for {escape(outcome.location)}: {escape(parts)}.[/green]"


def _masked_url(url: str | None) -> str | None:
    """Return ``url`` with any password replaced by ``***``."""
    if not url:
        return url
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return url


async def _crawl(config: CatalogConfig, roots: list[RootRequest]) -> CrawlReport:
    store = CatalogStore.from_settings(config.database)
    try:
        if config.database.create_schema:
            await store.create_schema()
        return await CrawlService(store, config).run(roots)
    finally:
        await store.dispose()


async def _show(config: CatalogConfig, identifier: str, limit: int | None) -> list[FileRecord]:
    store = CatalogStore.from_settings(config.database)
    try:
        return await store.fetch_files(identifier, limit=limit)
    finally:
        await store.dispose()


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="filecatalog")
def cli() -> None:
    """filecatalog records files from directories and buckets in a database."""


@cli.command()
@click.argument("paths", nargs=-1, required=True)
@click.option(
    "-i",
    "--identifier",
    type=str,
    help="Source identifier to store rows under (defaults to host:path or the bucket URL).",
)
@click.option("--database-url", type=str, help="Override the catalog database URL.")
@click.option("--batch-size", type=click.IntRange(min=1), help="Entries per write batch.")
@click.option("--json", "json_output", is_flag=True, help="Emit a JSON report.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (repeatable).")
def crawl(
    paths: tuple[str, ...],
    identifier: str | None,
    database_url: str | None,
    batch_size: int | None,
    json_output: bool,
    quiet: bool,
    verbose: int,
) -> None:
    """Catalog every file below PATHS (directories or scheme://bucket/prefix URLs).

    Roots are crawled concurrently; each root is committed on its own, and the
    command exits with status 1 if any root failed.

    Args:
        paths: Root locations to crawl.
        identifier: Optional identifier applied to every root.
        database_url: Optional database URL override.
        batch_size: Optional batch size override.
        json_output: When True, emit the report as JSON.
        quiet: When True, suppress non-error output.
        verbose: Number of ``-v`` flags given.
    """

    if json_output and quiet:
        raise click.ClickException("--json cannot be combined with --quiet.")

    config = _load_config(
        {"database.url": database_url, "crawl.batch_size": batch_size},
        json_output=json_output,
    )
    _configure_logging(config.logging.level, verbose)

    if identifier and len(paths) > 1:
        err_console.print(
            f"[yellow]--identifier applies to all {len(paths)} roots; "
            "their rows will share one source.[/yellow]"
        )

    roots = [RootRequest(path, identifier) for path in paths]
    try:
        report = asyncio.run(_crawl(config, roots))
    except StoreError as exc:
        _handle_cli_error(str(exc), code="store_error", json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(data=report.to_dict())
    elif not quiet:
        for outcome in report.outcomes:
            console.print(_format_summary_line(outcome))

    if not report.ok:
        if quiet and not json_output:
            for outcome in report.failures:
                err_console.print(_format_summary_line(outcome))
        raise SystemExit(1)


@cli.command()
@click.argument("identifier")
@click.option("--limit", type=click.IntRange(min=1), default=50, show_default=True)
@click.option("--database-url", type=str, help="Override the catalog database URL.")
@click.option("--json", "json_output", is_flag=True, help="Emit rows as JSON.")
def show(identifier: str, limit: int, database_url: str | None, json_output: bool) -> None:
    """List catalogued rows stored under IDENTIFIER."""

    config = _load_config({"database.url": database_url}, json_output=json_output)
    try:
        records = asyncio.run(_show(config, identifier, limit))
    except StoreError as exc:
        _handle_cli_error(str(exc), code="store_error", json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(data={"files": [record.model_dump(mode="json") for record in records]})
        return

    if not records:
        console.print(f"[yellow]No rows stored for {identifier}.[/yellow]")
        return

    table = Table(title=escape(identifier))
    for column in ("Path", "Name", "MIME type", "Modified", "Size"):
        table.add_column(column)
    for record in records:
        table.add_row(
            escape(record.path),
            escape(record.filename),
            record.mime_type or "-",
            record.modified.isoformat(),
            "-" if record.size is None else str(record.size),
        )
    console.print(table)


@cli.group()
def config() -> None:
    """Manage filecatalog configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    data = loaded.model_dump(mode="python")
    data["database"]["url"] = _masked_url(data["database"]["url"])
    yaml_text = yaml.safe_dump(data, sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'crawl.batch_size'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    before = manager.read_text().splitlines()
    try:
        merged = resolve_with_precedence(
            defaults=CatalogConfig(),
            file_overrides=manager.load_file_overrides(),
            cli_overrides={".".join(segments): parsed_value},
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(merged)
    after = manager.read_text().splitlines()

    diff = list(
        difflib.unified_diff(
            before[2:],
            after[2:],
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
