"""Venue adapters: field mapping, status rules and failure isolation."""

import asyncio
import json
from datetime import datetime, timezone

import httpx

from oddgrid.models import MarketStatus, MarketType
from oddgrid.storage.markets import set_market_status, upsert_market
from oddgrid.venues import KalshiAdapter, LocalVenueAdapter, PolymarketAdapter


def _transport(body, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, str):
            return httpx.Response(status_code, text=body)
        return httpx.Response(status_code, json=body)

    return httpx.MockTransport(handler)


def _list(adapter):
    return asyncio.run(adapter.list_markets())


POLY_ROW = {
    "id": 512345,
    "conditionId": "0xabc",
    "slug": "fed-hike-2025",
    "question": "Will the Fed hike in 2025?",
    "description": "Resolves YES if ...",
    "resolutionSource": "federalreserve.gov",
    "closed": False,
    "volume24hr": "1234.5",
    "updatedAt": "2025-03-01T12:00:00Z",
}


def test_polymarket_maps_fields():
    seen = []
    adapter = PolymarketAdapter(base_url="https://gamma.test/", limit=7, transport=_transport([POLY_ROW], seen=seen))
    [m] = _list(adapter)

    assert seen[0].url.path == "/markets"
    assert seen[0].url.params["limit"] == "7"
    assert m.id == "polymarket:512345"
    assert m.venue == "polymarket"
    assert m.external_id == "512345"
    assert m.title == "Will the Fed hike in 2025?"
    assert m.description == "Resolves YES if ..."
    assert m.resolution_rule == "federalreserve.gov"
    assert m.type == MarketType.YES_NO
    assert m.status == MarketStatus.OPEN
    assert m.volume_24h == 1234.5
    assert m.open_interest is None
    assert m.last_updated == datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert [(o.id, o.name, o.probability) for o in m.outcomes] == [("YES", "YES", None), ("NO", "NO", None)]


def test_polymarket_fallbacks_and_closed_status():
    rows = [
        {"id": "", "conditionId": "0xdef", "slug": "some-slug", "closed": True},
        {"slug": "only-slug"},
        {"id": 9, "question": "  "},
    ]
    before = datetime.now(timezone.utc)
    markets = _list(PolymarketAdapter(transport=_transport(rows)))
    after = datetime.now(timezone.utc)

    assert [m.id for m in markets] == ["polymarket:0xdef", "polymarket:only-slug", "polymarket:9"]
    assert [m.title for m in markets] == ["some-slug", "only-slug", "Untitled Polymarket market"]
    assert [m.status for m in markets] == [MarketStatus.RESOLVED, MarketStatus.OPEN, MarketStatus.OPEN]
    assert all(before <= m.last_updated <= after for m in markets)


def test_polymarket_closed_must_be_true_not_truthy():
    [m] = _list(PolymarketAdapter(transport=_transport([{"id": 1, "closed": "true"}])))
    assert m.status == MarketStatus.OPEN


def test_rows_without_identifier_are_skipped():
    rows = [{"question": "no id at all"}, "not-an-object", POLY_ROW]
    markets = _list(PolymarketAdapter(transport=_transport(rows)))
    assert [m.external_id for m in markets] == ["512345"]


def test_polymarket_failures_yield_empty_list():
    assert _list(PolymarketAdapter(transport=_transport({"error": "nope"}, status_code=500))) == []
    assert _list(PolymarketAdapter(transport=_transport(httpx.ConnectError("refused")))) == []
    assert _list(PolymarketAdapter(transport=_transport("<html>not json</html>"))) == []
    assert _list(PolymarketAdapter(transport=_transport({"data": [POLY_ROW]}))) == []


KALSHI_ROW = {
    "ticker": "KXUNEMP-25-T5",
    "title": "Unemployment above 5%?",
    "rules_primary": "Resolves per BLS.",
    "status": "active",
    "volume_24h": 812,
    "open_interest": 4400,
    "updated_at": "2025-04-02T08:30:00+00:00",
}


def test_kalshi_maps_fields():
    seen = []
    adapter = KalshiAdapter(base_url="https://kalshi.test/trade-api/v2", transport=_transport({"markets": [KALSHI_ROW]}, seen=seen))
    [m] = _list(adapter)

    assert seen[0].url.path == "/trade-api/v2/markets"
    assert seen[0].url.params["limit"] == "50"
    assert m.id == "kalshi:KXUNEMP-25-T5"
    assert m.external_id == "KXUNEMP-25-T5"
    assert m.title == "Unemployment above 5%?"
    assert m.resolution_rule == "Resolves per BLS."
    assert m.status == MarketStatus.OPEN
    assert m.volume_24h == 812
    assert m.open_interest == 4400
    assert m.last_updated == datetime(2025, 4, 2, 8, 30, tzinfo=timezone.utc)
    assert [o.id for o in m.outcomes] == ["YES", "NO"]


def test_kalshi_status_rules():
    rows = [
        {"ticker": "A", "status": "resolved"},
        {"ticker": "B", "status": "settled"},
        {"ticker": "C", "is_closed": True, "status": "active"},
        {"ticker": "D", "status": "open"},
        {"ticker": "E"},
    ]
    markets = _list(KalshiAdapter(transport=_transport({"markets": rows})))
    assert [m.status for m in markets] == [
        MarketStatus.RESOLVED,
        MarketStatus.RESOLVED,
        MarketStatus.RESOLVED,
        MarketStatus.OPEN,
        MarketStatus.OPEN,
    ]
    assert all(m.status != MarketStatus.SUSPENDED for m in markets)


def test_kalshi_identifier_and_title_fallbacks():
    rows = [
        {"id": 42, "ticker": "T42", "name": "Named market"},
        {"ticker": "T43"},
        {"slug": "s44", "title": ""},
    ]
    markets = _list(KalshiAdapter(transport=_transport(rows)))
    assert [m.id for m in markets] == ["kalshi:42", "kalshi:T43", "kalshi:s44"]
    assert [m.title for m in markets] == ["Named market", "T43", "Untitled Kalshi market"]


def test_kalshi_failures_yield_empty_list():
    assert _list(KalshiAdapter(transport=_transport({"markets": "oops"}))) == []
    assert _list(KalshiAdapter(transport=_transport({}, status_code=401))) == []
    assert _list(KalshiAdapter(transport=_transport(httpx.ReadTimeout("slow")))) == []


def test_local_adapter_reads_stored_markets(seeded):
    set_market_status(seeded, "kalshi-us-unemployment-gt-5", MarketStatus.SUSPENDED)
    upsert_market(seeded, venue="oddgrid", title="Who wins?", market_type=MarketType.MULTI_OUTCOME, market_id="multi")
    markets = _list(LocalVenueAdapter(seeded))

    assert sorted(m.id for m in markets) == [
        "oddgrid:kalshi-us-unemployment-gt-5",
        "oddgrid:multi",
        "oddgrid:oddgrid-demo-nba-final",
        "oddgrid:poly-fed-rate-2025",
    ]
    assert all(m.venue == "oddgrid" for m in markets)
    by_id = {m.external_id: m for m in markets}
    assert by_id["kalshi-us-unemployment-gt-5"].status == MarketStatus.SUSPENDED
    assert [o.id for o in by_id["poly-fed-rate-2025"].outcomes] == ["YES", "NO"]
    assert by_id["multi"].type == MarketType.MULTI_OUTCOME
    assert by_id["multi"].outcomes == []
    assert by_id["poly-fed-rate-2025"].resolution_rule.startswith("Resolves using Fed")


def test_local_adapter_storage_failure_yields_empty_list(conn):
    conn.execute("DROP TABLE markets")
    assert _list(LocalVenueAdapter(conn)) == []


def test_market_serializes_with_camel_case_keys():
    [m] = _list(PolymarketAdapter(transport=_transport([POLY_ROW])))
    data = json.loads(m.model_dump_json(by_alias=True))
    assert set(data) >= {"id", "venue", "externalId", "title", "type", "status", "outcomes", "lastUpdated"}
    assert "volume24h" in data and "openInterest" in data and "resolutionRule" in data
    assert set(data["outcomes"][0]) == {"id", "name", "probability", "bestBid", "bestAsk"}
    assert data["type"] == "YES_NO"
