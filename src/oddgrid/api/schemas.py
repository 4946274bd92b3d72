"""Pydantic schemas for API request/response consistency and OpenAPI docs."""

from __future__ import annotations

from pydantic import Field

from oddgrid.models import NormalizedMarket
from oddgrid.models.market import CamelModel


# --- Health ---
class HealthResponse(CamelModel):
    status: str = "ok"


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(CamelModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. validation_error, not_found")
    available: float | None = Field(None, description="insufficient_balance only")
    required: float | None = Field(None, description="insufficient_balance only")


# --- Markets ---
class MarketsListResponse(CamelModel):
    markets: list[NormalizedMarket]
    total: int


# --- Orders ---
class OrderRequest(CamelModel):
    """Body of POST /orders. Range checks are done by the ledger so errors share one shape."""

    market_id: str = ""
    probability: float | None = None
    stake_amount: float | None = None
