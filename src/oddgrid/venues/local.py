"""OddGrid's own venue: markets persisted in DuckDB."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from oddgrid.models import MarketType, NormalizedMarket, binary_outcomes
from oddgrid.storage.db import ms_to_datetime
from oddgrid.storage.markets import list_markets
from oddgrid.venues.base import VenueAdapter, normalize_rows

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

VENUE = "oddgrid"
_PREFIX = f"{VENUE}:"


def local_market_id(market_id: str) -> str:
    """Stored id for either a bare id or an "oddgrid:"-qualified one."""
    market_id = (market_id or "").strip()
    if market_id.startswith(_PREFIX):
        return market_id[len(_PREFIX):]
    return market_id


def market_from_row(row: dict[str, Any], fetched_at: datetime | None = None) -> NormalizedMarket:
    """Stored market row -> NormalizedMarket. Status and type are taken as stored."""
    market_type = MarketType(row["type"])
    return NormalizedMarket(
        id=f"{_PREFIX}{row['id']}",
        venue=VENUE,
        external_id=str(row["id"]),
        title=row["title"],
        description=row.get("description"),
        type=market_type,
        status=row["status"],
        outcomes=binary_outcomes() if market_type == MarketType.YES_NO else [],
        resolution_rule=row.get("resolution_rule"),
        volume_24h=None,
        open_interest=None,
        last_updated=ms_to_datetime(row.get("updated_at")) or fetched_at or datetime.now(timezone.utc),
    )


class LocalVenueAdapter(VenueAdapter):
    """Lists stored markets. The connection is injected; each fetch uses its own cursor."""

    venue = VENUE

    def __init__(self, conn: DuckDBPyConnection, limit: int = 200) -> None:
        self._conn = conn
        self.limit = limit

    def _read_rows(self) -> list[dict[str, Any]]:
        cur = self._conn.cursor()
        try:
            return list_markets(cur, limit=self.limit)
        finally:
            cur.close()

    async def fetch_markets(self) -> list[NormalizedMarket]:
        rows = await asyncio.to_thread(self._read_rows)
        return normalize_rows(VENUE, rows, market_from_row, datetime.now(timezone.utc))
