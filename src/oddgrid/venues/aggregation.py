"""Aggregation service - concurrent fan-out over venue adapters."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Sequence

import httpx
import structlog

from oddgrid.models import NormalizedMarket
from oddgrid.venues.base import VenueAdapter
from oddgrid.venues.kalshi import KalshiAdapter
from oddgrid.venues.local import LocalVenueAdapter
from oddgrid.venues.polymarket import PolymarketAdapter

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

    from oddgrid.config import Settings

log = structlog.get_logger(__name__)


class MarketAggregationService:
    """Runs all adapters concurrently and concatenates their markets in registration order.

    Each adapter is bounded by adapter_timeout_sec; an adapter that times out (or breaks its
    never-raise contract) contributes no markets and the rest are still returned.
    No de-duplication across venues.
    """

    def __init__(self, adapters: Sequence[VenueAdapter], adapter_timeout_sec: float = 10.0) -> None:
        self.adapters = list(adapters)
        self.adapter_timeout_sec = adapter_timeout_sec

    @property
    def venues(self) -> list[str]:
        return [a.venue for a in self.adapters]

    async def _run_adapter(self, adapter: VenueAdapter) -> list[NormalizedMarket]:
        start = time.monotonic()
        try:
            markets = await asyncio.wait_for(adapter.list_markets(), timeout=self.adapter_timeout_sec)
        except asyncio.TimeoutError:
            log.warning("adapter_timeout", venue=adapter.venue, timeout_sec=self.adapter_timeout_sec)
            return []
        except Exception as e:
            log.error("adapter_failed", venue=adapter.venue, error=str(e), error_type=type(e).__name__)
            return []
        log.debug(
            "adapter_done",
            venue=adapter.venue,
            market_count=len(markets),
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
        )
        return list(markets)

    async def list_all_markets(self) -> list[NormalizedMarket]:
        results = await asyncio.gather(*(self._run_adapter(a) for a in self.adapters))
        return [m for batch in results for m in batch]


def build_adapters(
    settings: Settings,
    conn: DuckDBPyConnection,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[VenueAdapter]:
    """Adapters for settings.enabled_venues, in configured order."""
    factories = {
        "oddgrid": lambda: LocalVenueAdapter(conn),
        "polymarket": lambda: PolymarketAdapter(
            base_url=settings.polymarket_api_base,
            limit=settings.market_limit,
            timeout=settings.request_timeout_sec,
            transport=transport,
        ),
        "kalshi": lambda: KalshiAdapter(
            base_url=settings.kalshi_api_base,
            limit=settings.market_limit,
            timeout=settings.request_timeout_sec,
            transport=transport,
        ),
    }
    adapters = []
    for slug in settings.enabled_venues:
        if slug not in factories:
            raise ValueError(f"Unknown venue in config: {slug}. Choose from: {list(factories)}")
        adapters.append(factories[slug]())
    return adapters


def build_aggregation_service(
    settings: Settings,
    conn: DuckDBPyConnection,
    transport: httpx.AsyncBaseTransport | None = None,
) -> MarketAggregationService:
    return MarketAggregationService(
        build_adapters(settings, conn, transport=transport),
        adapter_timeout_sec=settings.adapter_timeout_sec,
    )
