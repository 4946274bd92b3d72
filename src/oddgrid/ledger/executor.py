"""Order executor: validate, then debit + position upsert + order insert as one transaction.

Ledger calls for one account are serialized by an in-process per-account lock, and the
three writes run inside a single DuckDB transaction on a per-call cursor, so either all of
them become visible or none do.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

import duckdb
import structlog

from oddgrid.ledger.errors import (
    InsufficientBalanceError,
    InternalError,
    LedgerError,
    NotFoundError,
    StateError,
    ValidationError,
)
from oddgrid.ledger.locks import AccountLocks
from oddgrid.models import (
    YES,
    Balance,
    Fill,
    MarketStatus,
    MarketType,
    NormalizedMarket,
    Order,
    OrderResult,
    OrderStatus,
    Position,
    Side,
)
from oddgrid.storage import accounts as account_store
from oddgrid.storage import orders as order_store
from oddgrid.storage.markets import get_market
from oddgrid.venues.local import local_market_id, market_from_row

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "USDV"

# Only YES-side buys are modeled; widen these together with _POSITION_UPDATES.
SUPPORTED_OUTCOMES = frozenset({YES})


def compute_fill(price: float, cost: float) -> Fill:
    return Fill(price=price, shares=cost / price, cost=cost)


def weighted_average(prev_size: float, prev_avg: float, shares: float, price: float) -> tuple[float, float]:
    """(new_size, new_avg) after adding shares at price to a holding."""
    new_size = prev_size + shares
    if new_size == 0:
        # unreachable while shares > 0
        return new_size, price
    return new_size, (prev_size * prev_avg + shares * price) / new_size


def _apply_buy(prior: Position | None, account_id: str, market_id: str, outcome_id: str, fill: Fill) -> Position:
    if prior is None:
        return Position(
            account_id=account_id,
            market_id=market_id,
            outcome_id=outcome_id,
            size=fill.shares,
            avg_price=fill.price,
        )
    size, avg = weighted_average(prior.size, prior.avg_price, fill.shares, fill.price)
    return prior.model_copy(update={"size": size, "avg_price": avg})


PositionUpdate = Callable[[Position | None, str, str, str, Fill], Position]

_POSITION_UPDATES: dict[Side, PositionUpdate] = {Side.BUY: _apply_buy}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_order(
    account_id: str,
    market_id: str,
    probability: float,
    stake_amount: float,
    side: Side | str = Side.BUY,
    outcome_id: str = YES,
) -> Side:
    """Check request shape only; touches no state. Returns the parsed side."""
    if not account_id or not str(account_id).strip():
        raise ValidationError("account id is required")
    if not market_id or not str(market_id).strip():
        raise ValidationError("marketId is required")
    if not _is_number(probability) or not 0 < probability < 1:
        raise ValidationError(f"probability must be between 0 and 1 (exclusive), got {probability!r}")
    if not _is_number(stake_amount) or stake_amount <= 0:
        raise ValidationError(f"stakeAmount must be greater than 0, got {stake_amount!r}")
    try:
        side = Side(side)
    except ValueError:
        raise ValidationError(f"unknown side: {side!r}") from None
    if side not in _POSITION_UPDATES:
        raise ValidationError(f"side {side.value} is not supported")
    if outcome_id not in SUPPORTED_OUTCOMES:
        raise ValidationError(f"outcome {outcome_id!r} is not supported")
    return side


class Ledger:
    """Applies simulated fills to balances and positions. The DuckDB connection is injected."""

    def __init__(
        self,
        conn: DuckDBPyConnection,
        currency: str = DEFAULT_CURRENCY,
        starting_balance: float = 10_000.0,
        locks: AccountLocks | None = None,
    ) -> None:
        self._conn = conn
        self.currency = currency
        self.starting_balance = starting_balance
        self._locks = locks if locks is not None else AccountLocks()

    # --- account collaborator helpers ---

    def open_account(self, account_id: str, amount: float | None = None) -> Balance:
        """Create the account's balance row if missing (starting_balance by default)."""
        if not account_id or not str(account_id).strip():
            raise ValidationError("account id is required")
        amount = self.starting_balance if amount is None else amount
        if not _is_number(amount) or amount < 0:
            raise ValidationError(f"opening balance must be >= 0, got {amount!r}")
        with self._locks.hold(account_id):
            cur = self._conn.cursor()
            try:
                return account_store.open_account(cur, account_id, self.currency, float(amount))
            finally:
                cur.close()

    def get_balance(self, account_id: str) -> Balance | None:
        cur = self._conn.cursor()
        try:
            return account_store.get_balance(cur, account_id, self.currency)
        finally:
            cur.close()

    def list_positions(self, account_id: str) -> list[Position]:
        cur = self._conn.cursor()
        try:
            return account_store.list_positions(cur, account_id)
        finally:
            cur.close()

    def list_orders(self, account_id: str, limit: int = 100) -> list[Order]:
        cur = self._conn.cursor()
        try:
            return order_store.list_orders(cur, account_id, limit=limit)
        finally:
            cur.close()

    # --- order execution ---

    def place_order(
        self,
        account_id: str,
        market_id: str,
        probability: float,
        stake_amount: float,
        *,
        side: Side | str = Side.BUY,
        outcome_id: str = YES,
    ) -> OrderResult:
        """Buy `stake_amount` worth of `outcome_id` at `probability`. Raises a LedgerError subclass on rejection."""
        try:
            parsed_side = validate_order(account_id, market_id, probability, stake_amount, side, outcome_id)
            cur = self._conn.cursor()
            try:
                with self._locks.hold(account_id):
                    return self._execute(
                        cur, account_id, market_id, parsed_side, outcome_id, float(probability), float(stake_amount)
                    )
            finally:
                cur.close()
        except LedgerError as e:
            log.info("order_rejected", account_id=account_id, market_id=market_id, code=e.code, reason=e.message)
            raise

    def _load_tradeable_market(self, cur: DuckDBPyConnection, market_id: str, outcome_id: str) -> NormalizedMarket:
        row = get_market(cur, local_market_id(market_id))
        if row is None:
            raise NotFoundError(f"Market not found: {market_id}")
        try:
            market = market_from_row(row)
        except ValueError as e:
            raise InternalError(f"Market {market_id} is stored in an unreadable state") from e
        if market.status != MarketStatus.OPEN:
            raise StateError(f"Market {market_id} is {market.status.value}, not OPEN")
        if market.type != MarketType.YES_NO:
            raise StateError(f"Market {market_id} is {market.type.value}; only YES_NO markets can be traded")
        if market.outcome(outcome_id) is None:
            raise StateError(f"Market {market_id} has no outcome {outcome_id}")
        return market

    def _execute(
        self,
        cur: DuckDBPyConnection,
        account_id: str,
        requested_market_id: str,
        side: Side,
        outcome_id: str,
        price: float,
        cost: float,
    ) -> OrderResult:
        fill = compute_fill(price, cost)
        market_id = local_market_id(requested_market_id)
        cur.begin()
        try:
            # market status is checked inside the same transaction as the writes
            market_id = self._load_tradeable_market(cur, requested_market_id, outcome_id).external_id
            balance = account_store.get_balance(cur, account_id, self.currency)
            if balance is None:
                raise NotFoundError(f"Account {account_id} has no {self.currency} balance")
            if balance.amount < fill.cost:
                raise InsufficientBalanceError(available=balance.amount, required=fill.cost)
            new_balance = balance.amount - fill.cost
            account_store.set_balance(cur, account_id, self.currency, new_balance)

            prior = account_store.get_position(cur, account_id, market_id, outcome_id)
            position = _POSITION_UPDATES[side](prior, account_id, market_id, outcome_id, fill)
            account_store.upsert_position(cur, position, exists=prior is not None)

            order = Order(
                id=uuid.uuid4().hex,
                account_id=account_id,
                market_id=market_id,
                side=side,
                outcome_id=outcome_id,
                price=fill.price,
                size=fill.shares,
                cost=fill.cost,
                status=OrderStatus.FILLED,
                created_at=datetime.now(timezone.utc),
            )
            order_store.insert_order(cur, order)
            cur.commit()
        except LedgerError:
            self._rollback(cur)
            raise
        except Exception as e:
            self._rollback(cur)
            log.error("order_failed", account_id=account_id, market_id=market_id, error=str(e))
            raise InternalError("Order could not be applied; no changes were made") from e

        log.info(
            "order_filled",
            order_id=order.id,
            account_id=account_id,
            market_id=market_id,
            side=side.value,
            outcome_id=outcome_id,
            price=fill.price,
            shares=fill.shares,
            cost=fill.cost,
            balance_after=new_balance,
        )
        return OrderResult(order=order, fill=fill)

    @staticmethod
    def _rollback(cur: DuckDBPyConnection) -> None:
        try:
            cur.rollback()
        except duckdb.Error as e:
            log.error("rollback_failed", error=str(e))
