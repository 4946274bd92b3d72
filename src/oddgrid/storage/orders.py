"""Order audit trail - append and query."""

from __future__ import annotations

from typing import TYPE_CHECKING

from oddgrid.models import Order
from oddgrid.storage.db import ms_to_datetime

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_ORDER_COLUMNS = "id, account_id, market_id, side, outcome_id, price, size, cost, status, created_at"


def insert_order(conn: DuckDBPyConnection, order: Order) -> None:
    """Append one order row."""
    conn.execute(
        f"INSERT INTO orders ({_ORDER_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        [
            order.id,
            order.account_id,
            order.market_id,
            order.side.value,
            order.outcome_id,
            order.price,
            order.size,
            order.cost,
            order.status.value,
            int(order.created_at.timestamp() * 1000),
        ],
    )


def list_orders(conn: DuckDBPyConnection, account_id: str, limit: int = 100) -> list[Order]:
    """Most recent orders first."""
    rows = conn.execute(
        f"SELECT {_ORDER_COLUMNS} FROM orders WHERE account_id = ? ORDER BY created_at DESC, id LIMIT ?",
        [account_id, limit],
    ).fetchall()
    return [
        Order(
            id=r[0],
            account_id=r[1],
            market_id=r[2],
            side=r[3],
            outcome_id=r[4],
            price=r[5],
            size=r[6],
            cost=r[7],
            status=r[8],
            created_at=ms_to_datetime(r[9]),
        )
        for r in rows
    ]


def count_orders(conn: DuckDBPyConnection, account_id: str | None = None) -> int:
    if account_id is None:
        return conn.execute("SELECT COUNT(*) FROM orders").fetchone()[0]
    return conn.execute("SELECT COUNT(*) FROM orders WHERE account_id = ?", [account_id]).fetchone()[0]
