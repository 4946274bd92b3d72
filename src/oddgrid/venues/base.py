"""Venue adapter contract and the mapping helpers every adapter shares."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import structlog

from oddgrid.models import VENUES, NormalizedMarket

log = structlog.get_logger(__name__)

RowParser = Callable[[dict[str, Any], datetime], NormalizedMarket]


class VenueAdapter(ABC):
    """Produces zero or more normalized markets for one venue. Implement for each source."""

    venue: str = ""

    async def list_markets(self) -> list[NormalizedMarket]:
        """Return normalized markets; any failure is logged and yields an empty list."""
        try:
            return await self.fetch_markets()
        except Exception as e:
            log.warning("adapter_fetch_failed", venue=self.venue, error=str(e), error_type=type(e).__name__)
            return []

    @abstractmethod
    async def fetch_markets(self) -> list[NormalizedMarket]:
        """Fetch and map the venue's markets. May raise; list_markets() contains it."""
        ...


async def get_json(
    url: str,
    params: dict[str, Any] | None = None,
    timeout: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """GET url and decode the JSON body. Raises on transport errors and non-2xx responses."""
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        resp = await client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()


def first_non_empty(*values: Any) -> str | None:
    """First value that is not None and not blank, as text."""
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s:
            return s
    return None


def optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_timestamp(value: Any, fallback: datetime) -> datetime:
    """ISO-8601 string (or datetime) from a source; fallback when missing or unparseable."""
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str) and value.strip():
        try:
            ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return fallback
    else:
        return fallback
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def untitled(venue: str) -> str:
    name = VENUES[venue].name if venue in VENUES else venue
    return f"Untitled {name} market"


def normalize_rows(
    venue: str,
    rows: list[Any],
    parse: RowParser,
    fetched_at: datetime,
) -> list[NormalizedMarket]:
    """Map raw rows with parse(); malformed rows are skipped with a warning."""
    markets = []
    for row in rows:
        if not isinstance(row, dict):
            log.warning("skip_market", venue=venue, error="row is not an object")
            continue
        try:
            markets.append(parse(row, fetched_at))
        except (TypeError, ValueError) as e:
            log.warning("skip_market", venue=venue, market_id=row.get("id"), error=str(e))
    return markets
