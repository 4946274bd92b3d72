"""Balance, Position, Order, Fill - account state touched by the ledger."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from oddgrid.models.market import CamelModel


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, Enum):
    FILLED = "FILLED"


class Balance(CamelModel):
    """Cash held by one account in one currency."""

    account_id: str
    currency: str
    amount: float = Field(..., ge=0)


class Position(CamelModel):
    """Accumulated holding in one outcome of one market."""

    account_id: str
    market_id: str
    outcome_id: str
    size: float = Field(..., ge=0)
    avg_price: float = Field(..., gt=0, lt=1)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Order(CamelModel):
    """Immutable record of one fill."""

    id: str
    account_id: str
    market_id: str
    side: Side
    outcome_id: str
    price: float
    size: float
    cost: float
    status: OrderStatus = OrderStatus.FILLED
    created_at: datetime


class Fill(CamelModel):
    """Price, shares and cash cost of one accepted trade."""

    price: float
    shares: float
    cost: float


class OrderResult(CamelModel):
    order: Order
    fill: Fill
