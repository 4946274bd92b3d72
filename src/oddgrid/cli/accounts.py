"""Accounts subcommand: open, show."""

from __future__ import annotations

import typer

from oddgrid.ledger import Ledger, LedgerError
from oddgrid.storage.db import get_connection, init_schema

app = typer.Typer(help="Virtual cash accounts")


@app.command("open")
def open_account(
    ctx: typer.Context,
    account_id: str = typer.Argument(..., help="Account key"),
    amount: float | None = typer.Option(None, "--amount", "-a", help="Opening balance (default: config starting_balance)"),
) -> None:
    """Create an account's cash balance if it does not exist yet."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        ledger = Ledger(conn, currency=settings.currency, starting_balance=settings.starting_balance)
        try:
            balance = ledger.open_account(account_id, amount)
        except LedgerError as e:
            typer.echo(f"Error: {e.message}")
            raise typer.Exit(1)
        typer.echo(f"{balance.account_id}: {balance.amount:.2f} {balance.currency}")
    finally:
        conn.close()


@app.command("show")
def show(
    ctx: typer.Context,
    account_id: str = typer.Argument(..., help="Account key"),
) -> None:
    """Show cash balance and positions."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        ledger = Ledger(conn, currency=settings.currency)
        balance = ledger.get_balance(account_id)
        if balance is None:
            typer.echo(f"Account not found: {account_id}")
            raise typer.Exit(1)
        typer.echo(f"Balance: {balance.amount:.2f} {balance.currency}")
        positions = ledger.list_positions(account_id)
        typer.echo(f"Positions: {len(positions)}")
        for p in positions:
            typer.echo(f"  {p.market_id[:32]:<32}  {p.outcome_id:<3}  size={p.size:.4f}  avg={p.avg_price:.4f}")
    finally:
        conn.close()
