"""Reference data: venues and sample YES/NO markets."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from oddgrid.models import VENUES
from oddgrid.storage.markets import upsert_market, upsert_venue

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SAMPLE_MARKETS: list[dict[str, Any]] = [
    {
        "venue": "polymarket",
        "external_id": "poly-fed-rate-2025",
        "title": "Will the Fed raise interest rates in 2025?",
        "description": "Yes/No market mirrored from Polymarket (simulation only).",
        "resolution_rule": "Resolves using Fed policy decision by Dec 31 2025.",
    },
    {
        "venue": "kalshi",
        "external_id": "kalshi-us-unemployment-gt-5",
        "title": "Will US unemployment be above 5% in 2025?",
        "description": "Simulated mirror of a macroeconomic Kalshi market (no real trading).",
        "resolution_rule": "Resolves using BLS unemployment data for 2025.",
    },
    {
        "venue": "oddgrid",
        "external_id": "oddgrid-demo-nba-final",
        "title": "Will Team A win the NBA Finals?",
        "description": "Example in-house OddGrid market.",
        "resolution_rule": "Resolves using official NBA results.",
    },
]


def seed_reference_data(conn: DuckDBPyConnection) -> list[str]:
    """Upsert venues and sample markets. Idempotent; market ids equal their external ids."""
    for venue in VENUES.values():
        upsert_venue(conn, venue)
    return [upsert_market(conn, market_id=m["external_id"], **m) for m in SAMPLE_MARKETS]
