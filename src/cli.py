"""Filter indexer command-line interface implemented with Typer."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from sqlalchemy.exc import ArgumentError

from config import Settings
from observability import configure_logging
from pipeline import (
    EventParseError,
    FilterPlugin,
    PipelineConfigurationError,
    build_context,
    parse_accepted_transaction,
)
from services.database import check_connection
from services.store import DocumentStore, StoreOperationError

SUCCESS_EXIT_CODE = 0
STORE_ERROR_EXIT_CODE = 1
CONFIG_ERROR_EXIT_CODE = 2


@dataclass(frozen=True)
class CliConfig:
    """Settings resolved once per invocation."""

    settings: Settings
    as_json: bool


def _emit_output(result: dict[str, Any], as_json: bool) -> None:
    """Render command output in requested format."""
    if as_json:
        typer.echo(json.dumps(result, sort_keys=True, separators=(",", ":")))
        return
    for key, value in result.items():
        typer.echo(f"{key}: {value}")


def _fail(message: str, code: int) -> typer.Exit:
    typer.echo(f"error: {message}", err=True)
    return typer.Exit(code=code)


def _require_config(ctx: typer.Context) -> CliConfig:
    """Return the CLI config stored by the root callback."""
    cfg = ctx.obj
    if not isinstance(cfg, CliConfig):
        raise RuntimeError("CLI context not initialized")
    return cfg


def _require_store(cfg: CliConfig) -> DocumentStore:
    url = cfg.settings.filter.database_url
    if not url:
        raise _fail("filter.database_url is not configured", CONFIG_ERROR_EXIT_CODE)
    try:
        store = DocumentStore.from_url(url)
    except ArgumentError:
        raise _fail("filter.database_url is not a valid SQLAlchemy URL", CONFIG_ERROR_EXIT_CODE) from None
    if not check_connection(store.engine):
        store.dispose()
        raise _fail("unable to connect to the filter database", STORE_ERROR_EXIT_CODE)
    return store


app = typer.Typer(no_args_is_help=True, help="Filtered action indexer")


@app.callback()
def main(
    ctx: typer.Context,
    database_url: str | None = typer.Option(
        None,
        "--database-url",
        help="SQLAlchemy URL of the filter database (overrides configuration)",
    ),
    log_level: str | None = typer.Option(None, help="Log level override"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
) -> None:
    """Resolve settings and configure logging for all commands."""
    overrides: dict[str, Any] = {}
    if database_url:
        overrides["filter"] = {"database_url": database_url}
    if log_level:
        overrides["log_level"] = log_level
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        raise _fail(f"invalid configuration: {exc}", CONFIG_ERROR_EXIT_CODE) from None
    configure_logging(level=settings.log_level, json_output=settings.log_json)
    ctx.obj = CliConfig(settings=settings, as_json=as_json)


@app.command("init")
def init_command(ctx: typer.Context) -> None:
    """Create the collections and seed the root account."""
    cfg = _require_config(ctx)
    store = _require_store(cfg)
    try:
        store.init_collections()
        context = build_context(store, cfg.settings.filter)
        seeded = context.registry.seed_root_account()
        accounts = store.count_accounts()
    except StoreOperationError as exc:
        raise _fail(str(exc), STORE_ERROR_EXIT_CODE) from None
    finally:
        store.dispose()
    _emit_output({"seeded": seeded, "accounts": accounts}, cfg.as_json)


@app.command("wipe")
def wipe_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Confirm dropping all indexed data"),
) -> None:
    """Drop and recreate the accounts and filter collections."""
    cfg = _require_config(ctx)
    if not yes:
        raise _fail("refusing to wipe without --yes", CONFIG_ERROR_EXIT_CODE)
    store = _require_store(cfg)
    try:
        store.drop_collections()
    except StoreOperationError as exc:
        raise _fail(str(exc), STORE_ERROR_EXIT_CODE) from None
    finally:
        store.dispose()
    _emit_output({"wiped": True}, cfg.as_json)


@app.command("ingest")
def ingest_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON Lines event file"),
    inline: bool = typer.Option(
        False,
        "--inline",
        help="Process every event on the calling thread instead of the consumer thread",
    ),
) -> None:
    """Replay accepted-transaction events from a JSON Lines file."""
    cfg = _require_config(ctx)
    plugin = FilterPlugin()
    try:
        plugin.initialize(cfg.settings)
    except PipelineConfigurationError as exc:
        raise _fail(str(exc), CONFIG_ERROR_EXIT_CODE) from None
    except StoreOperationError as exc:
        raise _fail(str(exc), STORE_ERROR_EXIT_CODE) from None
    if not plugin.configured:
        raise _fail("filter.database_url is not configured", CONFIG_ERROR_EXIT_CODE)

    stats = plugin.context.processor.stats
    submitted = 0
    skipped = 0
    try:
        if not inline:
            plugin.startup()
        with path.open(encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    event = parse_accepted_transaction(json.loads(line), line=line_number)
                except (json.JSONDecodeError, EventParseError) as exc:
                    skipped += 1
                    typer.echo(f"skipping line {line_number}: {exc}", err=True)
                    continue
                plugin.accepted_transaction(event)
                submitted += 1
    finally:
        plugin.shutdown()
    _emit_output(
        {
            "submitted": submitted,
            "skipped": skipped,
            "transactions": stats.transactions,
            "actions": stats.actions,
            "persisted": stats.persisted,
            "write_failures": stats.write_failures,
        },
        cfg.as_json,
    )


if __name__ == "__main__":
    app()
