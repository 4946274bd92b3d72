"""Venue adapters (Polymarket, Kalshi, OddGrid) and the aggregation service."""

from oddgrid.venues.aggregation import MarketAggregationService, build_adapters, build_aggregation_service
from oddgrid.venues.base import VenueAdapter
from oddgrid.venues.kalshi import KalshiAdapter
from oddgrid.venues.local import LocalVenueAdapter
from oddgrid.venues.polymarket import PolymarketAdapter

__all__ = [
    "VenueAdapter",
    "PolymarketAdapter",
    "KalshiAdapter",
    "LocalVenueAdapter",
    "MarketAggregationService",
    "build_adapters",
    "build_aggregation_service",
]
