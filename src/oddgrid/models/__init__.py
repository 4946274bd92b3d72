"""Canonical schema (Pydantic) - markets and ledger state."""

from oddgrid.models.ledger import Balance, Fill, Order, OrderResult, OrderStatus, Position, Side
from oddgrid.models.market import (
    NO,
    VENUES,
    YES,
    MarketStatus,
    MarketType,
    NormalizedMarket,
    Outcome,
    Venue,
    binary_outcomes,
)

__all__ = [
    "NormalizedMarket",
    "Outcome",
    "Venue",
    "VENUES",
    "MarketType",
    "MarketStatus",
    "YES",
    "NO",
    "binary_outcomes",
    "Balance",
    "Position",
    "Order",
    "OrderStatus",
    "OrderResult",
    "Fill",
    "Side",
]
