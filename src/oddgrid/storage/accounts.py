"""Balance and position persistence. Mutations are issued by the ledger inside its transaction."""

from __future__ import annotations

from typing import TYPE_CHECKING

from oddgrid.models import Balance, Position
from oddgrid.storage.db import ms_to_datetime, now_ms

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_POSITION_COLUMNS = "account_id, market_id, outcome_id, size, avg_price, created_at, updated_at"


def _position_from_row(row: tuple) -> Position:
    return Position(
        account_id=row[0],
        market_id=row[1],
        outcome_id=row[2],
        size=row[3],
        avg_price=row[4],
        created_at=ms_to_datetime(row[5]),
        updated_at=ms_to_datetime(row[6]),
    )


def open_account(conn: DuckDBPyConnection, account_id: str, currency: str, amount: float) -> Balance:
    """Create the balance row for an account if absent. An existing balance is left untouched."""
    conn.execute(
        """
        INSERT INTO balances (account_id, currency, amount, updated_at) VALUES (?, ?, ?, ?)
        ON CONFLICT (account_id, currency) DO NOTHING
        """,
        [account_id, currency, amount, now_ms()],
    )
    return get_balance(conn, account_id, currency)


def get_balance(conn: DuckDBPyConnection, account_id: str, currency: str) -> Balance | None:
    row = conn.execute(
        "SELECT account_id, currency, amount FROM balances WHERE account_id = ? AND currency = ?",
        [account_id, currency],
    ).fetchone()
    if not row:
        return None
    return Balance(account_id=row[0], currency=row[1], amount=row[2])


def set_balance(conn: DuckDBPyConnection, account_id: str, currency: str, amount: float) -> None:
    conn.execute(
        "UPDATE balances SET amount = ?, updated_at = ? WHERE account_id = ? AND currency = ?",
        [amount, now_ms(), account_id, currency],
    )


def get_position(
    conn: DuckDBPyConnection, account_id: str, market_id: str, outcome_id: str
) -> Position | None:
    row = conn.execute(
        f"SELECT {_POSITION_COLUMNS} FROM positions WHERE account_id = ? AND market_id = ? AND outcome_id = ?",
        [account_id, market_id, outcome_id],
    ).fetchone()
    return _position_from_row(row) if row else None


def upsert_position(conn: DuckDBPyConnection, position: Position, *, exists: bool) -> None:
    """Write a position. `exists` says whether a row was read for this key in the same transaction."""
    ts = now_ms()
    if exists:
        conn.execute(
            """
            UPDATE positions SET size = ?, avg_price = ?, updated_at = ?
            WHERE account_id = ? AND market_id = ? AND outcome_id = ?
            """,
            [position.size, position.avg_price, ts, position.account_id, position.market_id, position.outcome_id],
        )
    else:
        conn.execute(
            f"INSERT INTO positions ({_POSITION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [position.account_id, position.market_id, position.outcome_id, position.size, position.avg_price, ts, ts],
        )


def list_positions(conn: DuckDBPyConnection, account_id: str) -> list[Position]:
    rows = conn.execute(
        f"SELECT {_POSITION_COLUMNS} FROM positions WHERE account_id = ? ORDER BY created_at, market_id, outcome_id",
        [account_id],
    ).fetchall()
    return [_position_from_row(r) for r in rows]
