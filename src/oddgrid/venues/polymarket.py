"""Polymarket Gamma API adapter - read-only market listing."""

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

VENUE = "polymarket"
GAMMA_API_BASE = "https://gamma-api.polymarket.com"


def parse_market(raw: dict[str, Any], fetched_at: datetime) -> NormalizedMarket:
    """Convert a Gamma API market object to NormalizedMarket. Binary, prices left unknown."""
    external_id = first_non_empty(raw.get("id"), raw.get("conditionId"), raw.get("slug"))
    if not external_id:
        raise ValueError("market has no id, conditionId or slug")
    return NormalizedMarket(
        id=f"{VENUE}:{external_id}",
        venue=VENUE,
        external_id=external_id,
        title=first_non_empty(raw.get("question"), raw.get("slug")) or untitled(VENUE),
        description=first_non_empty(raw.get("description")),
        type=MarketType.YES_NO,
        status=MarketStatus.RESOLVED if raw.get("closed") is True else MarketStatus.OPEN,
        outcomes=binary_outcomes(),
        resolution_rule=first_non_empty(raw.get("resolutionSource")),
        volume_24h=optional_float(raw.get("volume24hr")),
        open_interest=None,
        last_updated=parse_timestamp(raw.get("updatedAt"), fetched_at),
    )


class PolymarketAdapter(VenueAdapter):
    """GET {base}/markets?limit=N; the body is a JSON list of markets."""

    venue = VENUE

    def __init__(
        self,
        base_url: str = GAMMA_API_BASE,
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
        if not isinstance(data, list):
            raise ValueError(f"unexpected response shape: {type(data).__name__}")
        return normalize_rows(VENUE, data, parse_market, datetime.now(timezone.utc))
