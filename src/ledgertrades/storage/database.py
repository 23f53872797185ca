"""PostgreSQL trade store: schema management and query compilation."""

from __future__ import annotations

import logging
from datetime import datetime

import psycopg

from ledgertrades.config import DatabaseConfig
from ledgertrades.errors import AssetNotFound, StorageFailure
from ledgertrades.ingestion.models import Asset, Trade, TradeRow
from ledgertrades.query.buckets import AggregateQueryPlan, TradeAggregation
from ledgertrades.query.pair import AssetPairQuery
from ledgertrades.query.paging import PageQuery, TradeCursorPager
from ledgertrades.query.timerange import from_millis
from ledgertrades.storage.base import TradeStore

logger = logging.getLogger(__name__)

# ── Schema ────────────────────────────────────────────────────────────────────

SCHEMA = """
CREATE TABLE IF NOT EXISTS history_assets (
    id             BIGSERIAL     PRIMARY KEY,
    asset_type     TEXT          NOT NULL,
    asset_code     TEXT          NOT NULL,
    asset_issuer   TEXT          NOT NULL,
    UNIQUE (asset_type, asset_code, asset_issuer)
);

CREATE TABLE IF NOT EXISTS history_trades (
    history_operation_id  BIGINT        NOT NULL,
    "order"               INTEGER       NOT NULL,
    ledger_closed_at      TIMESTAMPTZ   NOT NULL,
    offer_id              BIGINT        NOT NULL,
    base_account          TEXT          NOT NULL,
    base_asset_id         BIGINT        NOT NULL REFERENCES history_assets (id),
    base_amount           BIGINT        NOT NULL CHECK (base_amount > 0),
    counter_account       TEXT          NOT NULL,
    counter_asset_id      BIGINT        NOT NULL REFERENCES history_assets (id),
    counter_amount        BIGINT        NOT NULL CHECK (counter_amount > 0),
    base_is_seller        BOOLEAN       NOT NULL,
    PRIMARY KEY (history_operation_id, "order"),
    CHECK (base_asset_id < counter_asset_id)
);

CREATE INDEX IF NOT EXISTS idx_history_trades_pair_ts
    ON history_trades (base_asset_id, counter_asset_id, ledger_closed_at);
"""

SELECT_ASSET_ID = """
SELECT id FROM history_assets
WHERE asset_type = %s AND asset_code = %s AND asset_issuer = %s;
"""

INSERT_ASSET = """
INSERT INTO history_assets (asset_type, asset_code, asset_issuer)
VALUES (%s, %s, %s)
ON CONFLICT (asset_type, asset_code, asset_issuer) DO NOTHING;
"""

INSERT_TRADE = """
INSERT INTO history_trades (
    history_operation_id, "order", ledger_closed_at, offer_id,
    base_account, base_asset_id, base_amount,
    counter_account, counter_asset_id, counter_amount,
    base_is_seller
)
VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
ON CONFLICT (history_operation_id, "order") DO NOTHING;
"""

_SELECT_TRADE_COLUMNS = """
SELECT htrd.history_operation_id, htrd."order", htrd.ledger_closed_at, htrd.offer_id,
       htrd.base_account, base_assets.asset_type, base_assets.asset_code,
       base_assets.asset_issuer, htrd.base_amount,
       htrd.counter_account, counter_assets.asset_type, counter_assets.asset_code,
       counter_assets.asset_issuer, htrd.counter_amount,
       htrd.base_is_seller
FROM history_trades htrd
JOIN history_assets base_assets ON htrd.base_asset_id = base_assets.id
JOIN history_assets counter_assets ON htrd.counter_asset_id = counter_assets.id
"""

# Epoch milliseconds of ledger_closed_at, floored (never truncated toward
# zero) to the bucket start.
_BUCKET_EXPR = (
    "FLOOR(FLOOR(EXTRACT(EPOCH FROM ledger_closed_at) * 1000) / %s::numeric)::bigint"
    " * %s::bigint"
)


# ── Query compilation ─────────────────────────────────────────────────────────


def _select_trades_sql(
    pair: AssetPairQuery | None, page: PageQuery
) -> tuple[str, list[object]]:
    """Compile a raw-trade page query.

    Filters by canonical pair (if any) and the cursor predicate, then
    orders by (history_operation_id, order) in the page's direction.
    """
    pager = TradeCursorPager(page)
    conditions: list[str] = []
    params: list[object] = []

    if pair is not None:
        conditions.append("htrd.base_asset_id = %s AND htrd.counter_asset_id = %s")
        params.extend([pair.base_asset_id, pair.counter_asset_id])

    cursor_sql, cursor_params = pager.where_clause("htrd")
    if cursor_sql:
        conditions.append(cursor_sql)
        params.extend(cursor_params)

    sql = _SELECT_TRADE_COLUMNS
    if conditions:
        sql += "WHERE " + " AND ".join(conditions) + "\n"
    sql += f"ORDER BY {pager.order_by('htrd')}\nLIMIT %s"
    params.append(page.limit)
    return sql, params


def _aggregate_sql(plan: AggregateQueryPlan) -> tuple[str, list[object]]:
    """Compile a bucketed aggregate plan into one grouped query.

    The inner select puts every trade in the caller's orientation: for a
    flipped pair, amounts are swapped and the price is base/counter, so
    all statistics are computed on already-inverted prices.  Open and
    close come from ordered array_agg so ties on ledger_closed_at fall
    back to (history_operation_id, order).

    Raises:
        ValueError: If the plan has no asset pair.
    """
    if plan.pair is None:
        raise ValueError("Aggregate plan has no asset pair")

    if plan.flipped:
        amounts = (
            "counter_amount AS base_amount, base_amount AS counter_amount, "
            "base_amount::float / counter_amount AS price"
        )
    else:
        amounts = (
            "base_amount, counter_amount, "
            "counter_amount::float / base_amount AS price"
        )

    conditions = ["base_asset_id = %s", "counter_asset_id = %s"]
    params: list[object] = [
        plan.resolution,
        plan.resolution,
        plan.pair.base_asset_id,
        plan.pair.counter_asset_id,
    ]
    window = plan.window
    if window.start_time is not None:
        conditions.append("ledger_closed_at >= %s")
        params.append(from_millis(window.start_time))
    if window.end_time is not None:
        conditions.append("ledger_closed_at < %s")
        params.append(from_millis(window.end_time))

    direction = "DESC" if plan.order == "desc" else "ASC"
    where = " AND ".join(conditions)
    sql = f"""
SELECT bucket_ts,
       COUNT(*) AS count,
       SUM(base_amount) AS base_volume,
       SUM(counter_amount) AS counter_volume,
       AVG(price) AS avg,
       MAX(price) AS high,
       MIN(price) AS low,
       (ARRAY_AGG(price ORDER BY ledger_closed_at ASC, history_operation_id ASC, "order" ASC))[1]
           AS open,
       (ARRAY_AGG(price ORDER BY ledger_closed_at DESC, history_operation_id DESC, "order" DESC))[1]
           AS close
FROM (
    SELECT {_BUCKET_EXPR} AS bucket_ts,
           history_operation_id, "order", ledger_closed_at,
           {amounts}
    FROM history_trades
    WHERE {where}
) AS htrd
GROUP BY bucket_ts
ORDER BY bucket_ts {direction}
LIMIT %s
"""
    params.append(plan.limit)
    return sql, params


def _trade_from_row(r: tuple) -> Trade:
    return Trade(
        operation_id=r[0],
        order=r[1],
        closed_at=r[2],
        offer_id=r[3],
        base_account=r[4],
        base_asset=Asset.from_parts(r[5], r[6], r[7]),
        base_amount=r[8],
        counter_account=r[9],
        counter_asset=Asset.from_parts(r[10], r[11], r[12]),
        counter_amount=r[13],
        base_is_seller=r[14],
    )


def _aggregation_from_row(r: tuple) -> TradeAggregation:
    # SUM(bigint) comes back as numeric (Decimal).
    return TradeAggregation(
        timestamp=r[0],
        count=r[1],
        base_volume=int(r[2]),
        counter_volume=int(r[3]),
        avg=r[4],
        high=r[5],
        low=r[6],
        open=r[7],
        close=r[8],
    )


# ── Database class ────────────────────────────────────────────────────────────


class Database(TradeStore):
    """Manages the PostgreSQL connection, schema, and trade queries."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._conn: psycopg.Connection | None = None

    @property
    def name(self) -> str:
        return "postgres"

    def connect(self) -> psycopg.Connection:
        """Open a connection to PostgreSQL."""
        if self._conn is None or self._conn.closed:
            try:
                self._conn = psycopg.connect(self._config.dsn)
            except psycopg.Error as exc:
                raise StorageFailure(f"Cannot connect to {self._config.host}: {exc}") from exc
            logger.info("Connected to database at %s", self._config.host)
        return self._conn

    def init_schema(self) -> None:
        """Create the asset and trade tables.

        Safe to call multiple times; uses IF NOT EXISTS.
        """
        conn = self.connect()
        with conn.cursor() as cur:
            cur.execute(SCHEMA)
        conn.commit()
        logger.info("Database schema initialized")

    def _fetch(self, sql: str, params: list[object] | tuple) -> list[tuple]:
        """Run one read query, turning driver errors into StorageFailure."""
        conn = self.connect()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            conn.commit()
        except psycopg.Error as exc:
            conn.rollback()
            logger.error("Query failed: %s", exc)
            raise StorageFailure(str(exc)) from exc
        return rows

    # ── Assets ────────────────────────────────────────────────────────────

    def get_asset_id(self, asset: Asset) -> int:
        rows = self._fetch(SELECT_ASSET_ID, (asset.asset_type, asset.code, asset.issuer))
        if not rows:
            raise AssetNotFound(asset)
        return rows[0][0]

    def get_create_asset_id(self, asset: Asset) -> int:
        conn = self.connect()
        try:
            with conn.cursor() as cur:
                cur.execute(INSERT_ASSET, (asset.asset_type, asset.code, asset.issuer))
            conn.commit()
        except psycopg.Error as exc:
            conn.rollback()
            raise StorageFailure(f"Failed to register asset {asset}: {exc}") from exc
        return self.get_asset_id(asset)

    # ── Trades ────────────────────────────────────────────────────────────

    def insert_trade(self, row: TradeRow) -> bool:
        """Insert one canonical trade row.

        Uses ON CONFLICT DO NOTHING so re-ingesting a ledger is harmless.
        """
        conn = self.connect()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    INSERT_TRADE,
                    (
                        row.operation_id,
                        row.order,
                        row.closed_at,
                        row.offer_id,
                        row.base_account,
                        row.base_asset_id,
                        row.base_amount,
                        row.counter_account,
                        row.counter_asset_id,
                        row.counter_amount,
                        row.base_is_seller,
                    ),
                )
                inserted = cur.rowcount == 1
            conn.commit()
        except psycopg.Error as exc:
            conn.rollback()
            raise StorageFailure(
                f"Failed to insert trade {row.operation_id}-{row.order}: {exc}"
            ) from exc
        logger.debug("Trade %d-%d inserted=%s", row.operation_id, row.order, inserted)
        return inserted

    def select_trades(self, pair: AssetPairQuery | None, page: PageQuery) -> list[Trade]:
        sql, params = _select_trades_sql(pair, page)
        return [_trade_from_row(r) for r in self._fetch(sql, params)]

    def select_aggregations(self, plan: AggregateQueryPlan) -> list[TradeAggregation]:
        if plan.window.is_empty:
            return []
        sql, params = _aggregate_sql(plan)
        return [_aggregation_from_row(r) for r in self._fetch(sql, params)]

    def get_trade_count(self, pair: AssetPairQuery | None = None) -> int:
        if pair is None:
            rows = self._fetch("SELECT COUNT(*) FROM history_trades", ())
        else:
            rows = self._fetch(
                "SELECT COUNT(*) FROM history_trades "
                "WHERE base_asset_id = %s AND counter_asset_id = %s",
                (pair.base_asset_id, pair.counter_asset_id),
            )
        return rows[0][0] if rows else 0

    def get_last_closed_at(self) -> datetime | None:
        rows = self._fetch("SELECT MAX(ledger_closed_at) FROM history_trades", ())
        return rows[0][0] if rows and rows[0][0] else None

    def close(self) -> None:
        if self._conn and not self._conn.closed:
            self._conn.close()

    def __enter__(self) -> Database:
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
