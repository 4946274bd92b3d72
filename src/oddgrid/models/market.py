"""Venue, NormalizedMarket, Outcome - canonical entities."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

YES = "YES"
NO = "NO"


class MarketType(str, Enum):
    YES_NO = "YES_NO"
    MULTI_OUTCOME = "MULTI_OUTCOME"


class MarketStatus(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"
    SUSPENDED = "SUSPENDED"  # never inferred from a source today


class CamelModel(BaseModel):
    """Snake-case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Venue(CamelModel):
    """Source of prediction-market listings (reference data)."""

    model_config = ConfigDict(frozen=True)

    slug: str
    name: str


VENUES: dict[str, Venue] = {
    "polymarket": Venue(slug="polymarket", name="Polymarket"),
    "kalshi": Venue(slug="kalshi", name="Kalshi"),
    "oddgrid": Venue(slug="oddgrid", name="OddGrid Native"),
}


class Outcome(CamelModel):
    """Single outcome (e.g. YES/NO) in a market."""

    id: str
    name: str
    probability: float | None = Field(None, ge=0, le=1, description="Probability in [0, 1]; None if unknown")
    best_bid: float | None = None
    best_ask: float | None = None


def binary_outcomes() -> list[Outcome]:
    """YES/NO pair with unknown probabilities."""
    return [Outcome(id=YES, name=YES), Outcome(id=NO, name=NO)]


class NormalizedMarket(CamelModel):
    """Canonical market - venue-agnostic."""

    id: str  # "{venue}:{external_id}"
    venue: str
    external_id: str
    title: str
    description: str | None = None
    type: MarketType = MarketType.YES_NO
    status: MarketStatus = MarketStatus.OPEN
    outcomes: list[Outcome] = Field(default_factory=list)
    resolution_rule: str | None = None
    volume_24h: float | None = Field(None, alias="volume24h")  # to_camel would give "volume24H"
    open_interest: float | None = None
    last_updated: datetime

    def outcome(self, outcome_id: str) -> Outcome | None:
        for o in self.outcomes:
            if o.id == outcome_id:
                return o
        return None
