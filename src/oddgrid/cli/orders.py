"""Orders subcommand: place, list."""

from __future__ import annotations

import typer

from oddgrid.ledger import Ledger, LedgerError
from oddgrid.storage.db import get_connection, init_schema

app = typer.Typer(help="Simulated orders")


@app.command("place")
def place(
    ctx: typer.Context,
    account: str = typer.Option(..., "--account", "-a", help="Account key"),
    market: str = typer.Option(..., "--market", "-m", help="Market id (or oddgrid:<id>)"),
    probability: float = typer.Option(..., "--probability", "-p", help="Price, strictly between 0 and 1"),
    stake: float = typer.Option(..., "--stake", "-s", help="Cash to spend"),
) -> None:
    """Buy YES at the given probability."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        ledger = Ledger(conn, currency=settings.currency)
        try:
            result = ledger.place_order(account, market, probability, stake)
        except LedgerError as e:
            typer.echo(f"Rejected ({e.code}): {e.message}")
            raise typer.Exit(1)
        fill = result.fill
        typer.echo(f"Order id: {result.order.id}")
        typer.echo(f"Filled {fill.shares:.4f} shares at {fill.price:.4f} for {fill.cost:.2f} {settings.currency}")
        balance = ledger.get_balance(account)
        if balance is not None:
            typer.echo(f"Balance: {balance.amount:.2f} {balance.currency}")
    finally:
        conn.close()


@app.command("list")
def list_orders(
    ctx: typer.Context,
    account: str = typer.Option(..., "--account", "-a", help="Account key"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max orders to show"),
) -> None:
    """Show an account's most recent orders."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        ledger = Ledger(conn, currency=settings.currency)
        orders = ledger.list_orders(account, limit=limit)
        for o in orders:
            typer.echo(
                f"  {o.created_at:%Y-%m-%d %H:%M:%S}  {o.side.value} {o.outcome_id}  "
                f"{o.market_id[:28]:<28}  {o.size:.4f} @ {o.price:.4f}  {o.status.value}"
            )
        typer.echo(f"Total: {len(orders)} orders")
    finally:
        conn.close()
