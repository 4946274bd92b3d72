"""Markets subcommand: list, seed, set-status."""

from __future__ import annotations

import asyncio

import typer

from oddgrid.models import MarketStatus
from oddgrid.storage.db import get_connection, init_schema
from oddgrid.storage.markets import set_market_status
from oddgrid.storage.seed import seed_reference_data
from oddgrid.venues import build_aggregation_service
from oddgrid.venues.local import local_market_id

app = typer.Typer(help="Aggregated market listing and local market data")


@app.command("list")
def list_markets(
    ctx: typer.Context,
    venue: str | None = typer.Option(None, "--venue", "-v", help="Only show markets from this venue"),
) -> None:
    """Fetch markets from every configured venue and print them."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        service = build_aggregation_service(settings, conn)
        markets = asyncio.run(service.list_all_markets())
        if venue:
            markets = [m for m in markets if m.venue == venue]
        for m in markets:
            typer.echo(f"  {m.id[:40]:<40}  {m.status.value:<9}  {m.title[:60]}")
        typer.echo(f"Total: {len(markets)} markets")
    finally:
        conn.close()


@app.command("seed")
def seed(ctx: typer.Context) -> None:
    """Insert venues and sample YES/NO markets into the local store."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        ids = seed_reference_data(conn)
        typer.echo(f"Seeded venues and {len(ids)} markets.")
    finally:
        conn.close()


@app.command("set-status")
def set_status(
    ctx: typer.Context,
    market_id: str = typer.Argument(..., help="Stored market id (or oddgrid:<id>)"),
    status: MarketStatus = typer.Argument(..., help="OPEN, RESOLVED or SUSPENDED"),
) -> None:
    """Change a local market's status."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        if not set_market_status(conn, local_market_id(market_id), status):
            typer.echo(f"Market not found: {market_id}")
            raise typer.Exit(1)
        typer.echo(f"{market_id} -> {status.value}")
    finally:
        conn.close()
