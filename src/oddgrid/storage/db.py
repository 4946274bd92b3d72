"""DuckDB connection and schema init."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
-- Venue reference data
CREATE TABLE IF NOT EXISTS venues (
    slug            VARCHAR PRIMARY KEY,
    name            VARCHAR NOT NULL
);

-- Markets owned or mirrored by OddGrid (read by the local venue adapter and the ledger)
CREATE TABLE IF NOT EXISTS markets (
    id              VARCHAR PRIMARY KEY,
    venue           VARCHAR NOT NULL,
    external_id     VARCHAR,
    title           VARCHAR NOT NULL,
    description     VARCHAR,
    type            VARCHAR NOT NULL,
    status          VARCHAR NOT NULL,
    resolution_rule VARCHAR,
    created_at      BIGINT NOT NULL,
    updated_at      BIGINT NOT NULL
);

-- Cash balance per (account, currency)
CREATE TABLE IF NOT EXISTS balances (
    account_id      VARCHAR NOT NULL,
    currency        VARCHAR NOT NULL,
    amount          DOUBLE NOT NULL CHECK (amount >= 0),
    updated_at      BIGINT NOT NULL,
    PRIMARY KEY (account_id, currency)
);

-- Accumulated holding per (account, market, outcome)
CREATE TABLE IF NOT EXISTS positions (
    account_id      VARCHAR NOT NULL,
    market_id       VARCHAR NOT NULL,
    outcome_id      VARCHAR NOT NULL,
    size            DOUBLE NOT NULL,
    avg_price       DOUBLE NOT NULL,
    created_at      BIGINT NOT NULL,
    updated_at      BIGINT NOT NULL,
    PRIMARY KEY (account_id, market_id, outcome_id)
);

-- Order audit trail (append-only)
CREATE TABLE IF NOT EXISTS orders (
    id              VARCHAR PRIMARY KEY,
    account_id      VARCHAR NOT NULL,
    market_id       VARCHAR NOT NULL,
    side            VARCHAR NOT NULL,
    outcome_id      VARCHAR NOT NULL,
    price           DOUBLE NOT NULL,
    size            DOUBLE NOT NULL,
    cost            DOUBLE NOT NULL,
    status          VARCHAR NOT NULL,
    created_at      BIGINT NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    Threads must not share it directly: take conn.cursor() per thread."""
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise


def now_ms() -> int:
    return int(time.time() * 1000)


def ms_to_datetime(ms: int | None) -> datetime | None:
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
