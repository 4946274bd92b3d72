"""Kalshi public trade API adapter - read-only market listing (no auth)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from oddgrid.models import MarketStatus, MarketType, NormalizedMarket, binary_outcomes
from oddgrid.venues.base import (
    VenueAdapter,
    first_non_empty,
    get_json,
    normalize_rows,
    optional_float,
    parse_timestamp,
    untitled,
)

VENUE = "kalshi"
KALSHI_API_BASE = "https://api.elections.kalshi.com/trade-api/v2"

# Kalshi lifecycle states that mean trading is over
_CLOSED_STATUSES = frozenset({"closed", "resolved", "settled", "finalized"})


def _status(raw: dict[str, Any]) -> MarketStatus:
    if raw.get("is_closed") is True:
        return MarketStatus.RESOLVED
    if str(raw.get("status") or "").strip().lower() in _CLOSED_STATUSES:
        return MarketStatus.RESOLVED
    return MarketStatus.OPEN


def parse_market(raw: dict[str, Any], fetched_at: datetime) -> NormalizedMarket:
    """Convert a Kalshi market object to NormalizedMarket."""
    external_id = first_non_empty(raw.get("id"), raw.get("ticker"), raw.get("slug"))
    if not external_id:
        raise ValueError("market has no id, ticker or slug")
    return NormalizedMarket(
        id=f"{VENUE}:{external_id}",
        venue=VENUE,
        external_id=external_id,
        title=first_non_empty(raw.get("title"), raw.get("name"), raw.get("ticker")) or untitled(VENUE),
        description=first_non_empty(raw.get("description"), raw.get("subtitle")),
        type=MarketType.YES_NO,
        status=_status(raw),
        outcomes=binary_outcomes(),
        resolution_rule=first_non_empty(raw.get("rules"), raw.get("rules_primary")),
        volume_24h=optional_float(raw.get("volume_24h")),
        open_interest=optional_float(raw.get("open_interest")),
        last_updated=parse_timestamp(raw.get("updated_at"), fetched_at),
    )


class KalshiAdapter(VenueAdapter):
    """GET {base}/markets?limit=N; the body is {"markets": [...]} (a bare list is accepted too)."""

    venue = VENUE

    def __init__(
        self,
        base_url: str = KALSHI_API_BASE,
        limit: int = 50,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.limit = limit
        self.timeout = timeout
        self.transport = transport

    async def fetch_markets(self) -> list[NormalizedMarket]:
        data = await get_json(
            f"{self.base_url}/markets",
            params={"limit": self.limit},
            timeout=self.timeout,
            transport=self.transport,
        )
        if isinstance(data, dict) and isinstance(data.get("markets"), list):
            rows = data["markets"]
        elif isinstance(data, list):
            rows = data
        else:
            raise ValueError(f"unexpected response shape: {type(data).__name__}")
        return normalize_rows(VENUE, rows, parse_market, datetime.now(timezone.utc))
