"""ledgertrades CLI: query recorded trades and trade aggregations."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import click

from ledgertrades.config import DatabaseConfig, LedgerTradesConfig, QueryConfig
from ledgertrades.errors import AssetNotFound, ClientInputError, InvalidAsset, StorageFailure
from ledgertrades.ingestion.models import Asset
from ledgertrades.query.continuation import NextWindow
from ledgertrades.service import TradeQueryService
from ledgertrades.storage.database import Database

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

EXIT_STORAGE_FAILURE = 1
EXIT_CLIENT_ERROR = 2
EXIT_NOT_FOUND = 4


def _setup_logging(log_level: str) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


class AssetType(click.ParamType):
    """Click parameter for 'native' or 'CODE:ISSUER'."""

    name = "asset"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> Asset:
        if isinstance(value, Asset):
            return value
        try:
            return Asset.parse(value)
        except InvalidAsset as exc:
            self.fail(str(exc), param, ctx)


ASSET = AssetType()


def _db_options(f):
    """Hidden connection overrides shared by every command that needs the DB."""
    f = click.option("--password", default=None, help="Database password.", hidden=True)(f)
    f = click.option("--user", default=None, help="Database user.", hidden=True)(f)
    f = click.option("--database", default=None, help="Database name.", hidden=True)(f)
    f = click.option("--port", default=None, type=int, help="Database port.", hidden=True)(f)
    f = click.option("--host", default=None, help="Database host.", hidden=True)(f)
    return f


def _db_config(ctx: click.Context, **overrides: Any) -> DatabaseConfig:
    """Build DatabaseConfig: config file < LEDGERTRADES_DB_* env < CLI options."""
    cfg: LedgerTradesConfig | None = ctx.obj.get("config") if ctx.obj else None
    base = DatabaseConfig.from_env(cfg.database if cfg else None)
    explicit = {k: v for k, v in overrides.items() if v is not None}
    return base.model_copy(update=explicit)


def _query_config(ctx: click.Context) -> QueryConfig:
    cfg: LedgerTradesConfig | None = ctx.obj.get("config") if ctx.obj else None
    return cfg.query if cfg else QueryConfig()


@contextmanager
def _query_errors() -> Iterator[None]:
    """Report query errors on stderr and exit with a status per error kind."""
    try:
        yield
    except ClientInputError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(EXIT_CLIENT_ERROR)
    except AssetNotFound as exc:
        click.echo(f"Market not found: {exc}", err=True)
        raise SystemExit(EXIT_NOT_FOUND)
    except StorageFailure as exc:
        logger.error("Storage failure: %s", exc)
        click.echo(f"Query failed: {exc}", err=True)
        raise SystemExit(EXIT_STORAGE_FAILURE)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Set logging verbosity.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to ledgertrades.toml config file.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, config_path: str | None) -> None:
    """ledgertrades - Historical trades and OHLC aggregates for ledger asset pairs.

    \b
    Quick start:
      1. ledgertrades db init                             Initialize the database
      2. ledgertrades trades list --base native --counter USD:GISSUER
      3. ledgertrades trades aggregate native USD:GISSUER --resolution 60000

    \b
    Assets are written as 'native' or 'CODE:ISSUER'.

    \b
    Database connection:
      Set via environment variables (recommended):
        LEDGERTRADES_DB_HOST  LEDGERTRADES_DB_PORT  LEDGERTRADES_DB_NAME
        LEDGERTRADES_DB_USER  LEDGERTRADES_DB_PASSWORD
      Or in ledgertrades.toml under [database].
    """
    _setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = LedgerTradesConfig.find_and_load(config_path)


# --- Database commands ---


@cli.group()
def db() -> None:
    """Database setup and management."""
    pass


@db.command("init")
@_db_options
@click.pass_context
def db_init(ctx: click.Context, **db_opts: Any) -> None:
    """Initialize the database schema."""
    config = _db_config(ctx, **db_opts)
    try:
        with Database(config) as db_conn:
            db_conn.init_schema()
        click.echo("Database schema initialized successfully.")
    except Exception as exc:
        click.echo(f"Failed to initialize database: {exc}", err=True)
        raise SystemExit(1)


# --- Status command ---


@cli.command()
@_db_options
@click.pass_context
def status(ctx: click.Context, **db_opts: Any) -> None:
    """Show trade counts and data freshness."""
    config = _db_config(ctx, **db_opts)

    with _query_errors(), Database(config) as db_conn:
        total = db_conn.get_trade_count()
        last = db_conn.get_last_closed_at()

    click.echo(f"  Total trades: {total:,}")
    if last:
        click.echo(f"  Last trade:   {last.isoformat()}")
        click.echo(f"  Data gap:     {datetime.now(UTC) - last}")
    else:
        click.echo("  No trades stored yet.")


# --- Trade commands ---


@cli.group()
def trades() -> None:
    """Query raw trades and trade aggregations."""
    pass


@trades.command("list")
@click.option("--base", "base_asset", type=ASSET, default=None, help="Base asset filter.")
@click.option("--counter", "counter_asset", type=ASSET, default=None, help="Counter asset filter.")
@click.option("--cursor", default=None, help="Paging token to continue from.")
@click.option("--limit", default=None, type=int, help="Page size.")
@click.option("--order", type=click.Choice(["asc", "desc"]), default="asc", help="Sort order.")
@_db_options
@click.pass_context
def trades_list(
    ctx: click.Context,
    base_asset: Asset | None,
    counter_asset: Asset | None,
    cursor: str | None,
    limit: int | None,
    order: str,
    **db_opts: Any,
) -> None:
    """Print one page of trades as JSON.

    --base and --counter must be given together.

    \b
    Examples:
      ledgertrades trades list --limit 20
      ledgertrades trades list --base native --counter USD:GISSUER --order desc
      ledgertrades trades list --cursor 4294967297-0
    """
    config = _db_config(ctx, **db_opts)
    with _query_errors(), Database(config) as db_conn:
        service = TradeQueryService(db_conn, _query_config(ctx))
        page = service.trades(base_asset, counter_asset, cursor=cursor, order=order, limit=limit)
    click.echo(page.model_dump_json(indent=2))


@trades.command("aggregate")
@click.argument("base_asset", type=ASSET)
@click.argument("counter_asset", type=ASSET)
@click.option("--resolution", default=None, type=int, help="Bucket width in milliseconds.")
@click.option("--start-time", default=None, type=int, help="Window start, epoch ms.")
@click.option("--end-time", default=None, type=int, help="Window end (exclusive), epoch ms.")
@click.option("--limit", default=None, type=int, help="Buckets per page.")
@click.option("--order", type=click.Choice(["asc", "desc"]), default="asc", help="Sort order.")
@click.option(
    "--all-pages", is_flag=True, default=False,
    help="Follow continuations until the window is exhausted.",
)
@_db_options
@click.pass_context
def trades_aggregate(
    ctx: click.Context,
    base_asset: Asset,
    counter_asset: Asset,
    resolution: int | None,
    start_time: int | None,
    end_time: int | None,
    limit: int | None,
    order: str,
    all_pages: bool,
    **db_opts: Any,
) -> None:
    """Print bucketed OHLC aggregates as JSON.

    Each page ends with a "next" descriptor: either "exhausted" or the
    time window to request next.

    \b
    Examples:
      ledgertrades trades aggregate native USD:GISSUER --resolution 3600000
      ledgertrades trades aggregate native USD:GISSUER --resolution 60000 \\
          --start-time 1500000000000 --end-time 1500003600000 --all-pages
    """
    config = _db_config(ctx, **db_opts)
    with _query_errors(), Database(config) as db_conn:
        service = TradeQueryService(db_conn, _query_config(ctx))
        page = service.trade_aggregations(
            base_asset,
            counter_asset,
            resolution=resolution,
            start_time=start_time,
            end_time=end_time,
            order=order,
            limit=limit,
        )
        click.echo(page.model_dump_json(indent=2))

        while all_pages and isinstance(page.next, NextWindow):
            logger.info(
                "Following continuation [%s, %s)", page.next.start_time, page.next.end_time
            )
            page = service.run_aggregations(page.next.apply(page.plan))
            click.echo(page.model_dump_json(indent=2))
