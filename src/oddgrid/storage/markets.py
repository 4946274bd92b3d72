"""Venue and market persistence."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from oddgrid.models import MarketStatus, MarketType, Venue
from oddgrid.storage.db import now_ms

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_MARKET_COLUMNS = [
    "id",
    "venue",
    "external_id",
    "title",
    "description",
    "type",
    "status",
    "resolution_rule",
    "created_at",
    "updated_at",
]
_SELECT_MARKET = f"SELECT {', '.join(_MARKET_COLUMNS)} FROM markets"


def upsert_venue(conn: DuckDBPyConnection, venue: Venue) -> None:
    """Insert or rename a venue."""
    conn.execute(
        """
        INSERT INTO venues (slug, name) VALUES (?, ?)
        ON CONFLICT (slug) DO UPDATE SET name = excluded.name
        """,
        [venue.slug, venue.name],
    )


def list_venues(conn: DuckDBPyConnection) -> list[Venue]:
    rows = conn.execute("SELECT slug, name FROM venues ORDER BY slug").fetchall()
    return [Venue(slug=r[0], name=r[1]) for r in rows]


def upsert_market(
    conn: DuckDBPyConnection,
    *,
    venue: str,
    title: str,
    external_id: str | None = None,
    description: str | None = None,
    market_type: MarketType | str = MarketType.YES_NO,
    status: MarketStatus | str = MarketStatus.OPEN,
    resolution_rule: str | None = None,
    market_id: str | None = None,
) -> str:
    """Insert or update a market row. Returns the market id (generated when not given)."""
    market_id = market_id or uuid.uuid4().hex[:12]
    ts = now_ms()
    conn.execute(
        """
        INSERT INTO markets (id, venue, external_id, title, description, type, status, resolution_rule, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (id) DO UPDATE SET
            venue = excluded.venue,
            external_id = excluded.external_id,
            title = excluded.title,
            description = excluded.description,
            type = excluded.type,
            status = excluded.status,
            resolution_rule = excluded.resolution_rule,
            updated_at = excluded.updated_at
        """,
        [
            market_id,
            venue,
            external_id,
            title,
            description,
            MarketType(market_type).value,
            MarketStatus(status).value,
            resolution_rule,
            ts,
            ts,
        ],
    )
    return market_id


def set_market_status(conn: DuckDBPyConnection, market_id: str, status: MarketStatus | str) -> bool:
    """Change a market's status. Returns False if the market does not exist."""
    if get_market(conn, market_id) is None:
        return False
    conn.execute(
        "UPDATE markets SET status = ?, updated_at = ? WHERE id = ?",
        [MarketStatus(status).value, now_ms(), market_id],
    )
    return True


def list_markets(conn: DuckDBPyConnection, limit: int = 200) -> list[dict[str, Any]]:
    """List stored markets as dicts, oldest first."""
    rows = conn.execute(f"{_SELECT_MARKET} ORDER BY created_at, id LIMIT ?", [limit]).fetchall()
    return [dict(zip(_MARKET_COLUMNS, r)) for r in rows]


def get_market(conn: DuckDBPyConnection, market_id: str) -> dict[str, Any] | None:
    row = conn.execute(f"{_SELECT_MARKET} WHERE id = ?", [market_id]).fetchone()
    if not row:
        return None
    return dict(zip(_MARKET_COLUMNS, row))
