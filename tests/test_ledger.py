"""Ledger: fill math, preconditions, atomicity and per-account serialization."""

import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from oddgrid.ledger import (
    AccountLocks,
    InsufficientBalanceError,
    InternalError,
    Ledger,
    NotFoundError,
    StateError,
    ValidationError,
    compute_fill,
    weighted_average,
)
from oddgrid.models import MarketStatus, MarketType, OrderStatus, Side
from oddgrid.storage import accounts as account_store
from oddgrid.storage import orders as order_store
from oddgrid.storage.markets import set_market_status, upsert_market

MARKET_ID = "poly-fed-rate-2025"


def test_first_fill_debits_cash_and_opens_position(ledger, seeded):
    result = ledger.place_order("alice", MARKET_ID, 0.6, 100)

    assert result.fill.price == 0.6
    assert result.fill.cost == 100
    assert result.fill.shares == 100 / 0.6
    assert result.order.side == Side.BUY
    assert result.order.outcome_id == "YES"
    assert result.order.status == OrderStatus.FILLED
    assert result.order.size == result.fill.shares
    assert ledger.get_balance("alice").amount == 9_900
    [position] = ledger.list_positions("alice")
    assert position.market_id == MARKET_ID
    assert position.size == pytest.approx(166.666666, rel=1e-6)
    assert position.avg_price == 0.6
    assert order_store.count_orders(seeded, "alice") == 1


def test_second_fill_recomputes_weighted_average(ledger):
    ledger.place_order("alice", MARKET_ID, 0.6, 100)
    result = ledger.place_order("alice", MARKET_ID, 0.4, 40)

    assert result.fill.shares == 40 / 0.4
    assert result.fill.shares == pytest.approx(100)
    [position] = ledger.list_positions("alice")
    assert position.size == pytest.approx(100 / 0.6 + 100)
    assert position.avg_price == pytest.approx(0.525)
    assert ledger.get_balance("alice").amount == pytest.approx(9_860)


def test_average_price_is_size_weighted_mean_of_all_fills(ledger):
    fills = [(0.3, 30), (0.5, 50), (0.8, 16), (0.25, 5), (0.65, 13)]
    sizes = []
    for price, stake in fills:
        sizes.append(ledger.place_order("alice", MARKET_ID, price, stake).fill.shares)

    [position] = ledger.list_positions("alice")
    expected_avg = sum(s * p for s, (p, _) in zip(sizes, fills)) / sum(sizes)
    assert position.avg_price == pytest.approx(expected_avg, rel=1e-12)
    assert position.size == pytest.approx(sum(sizes), rel=1e-12)


def test_position_size_never_decreases(ledger):
    last = 0.0
    for price in (0.9, 0.1, 0.55, 0.99, 0.01):
        ledger.place_order("alice", MARKET_ID, price, 10)
        [position] = ledger.list_positions("alice")
        assert position.size > last
        last = position.size


def test_prefixed_market_id_is_accepted(ledger):
    result = ledger.place_order("alice", f"oddgrid:{MARKET_ID}", 0.5, 10)
    assert result.order.market_id == MARKET_ID


def test_pure_helpers():
    assert compute_fill(0.25, 10).shares == 40
    assert weighted_average(0, 0.5, 10, 0.2) == (10, 0.2)
    assert weighted_average(0, 0.5, 0, 0.2) == (0, 0.2)
    size, avg = weighted_average(10, 0.5, 30, 0.1)
    assert size == 40
    assert avg == pytest.approx(0.2)


@pytest.mark.parametrize("probability", [1.2, 0, 1, -0.1, math.nan, math.inf, None, True])
def test_bad_probability_rejected_before_any_state_read(probability):
    conn = MagicMock()
    ledger = Ledger(conn)
    with pytest.raises(ValidationError):
        ledger.place_order("alice", MARKET_ID, probability, 100)
    conn.cursor.assert_not_called()
    conn.execute.assert_not_called()


@pytest.mark.parametrize("stake", [0, -5, math.nan, None])
def test_non_positive_stake_rejected_before_any_state_read(stake):
    conn = MagicMock()
    with pytest.raises(ValidationError):
        Ledger(conn).place_order("alice", MARKET_ID, 0.5, stake)
    conn.cursor.assert_not_called()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"market_id": ""},
        {"market_id": "   "},
        {"account_id": ""},
        {"side": "SELL"},
        {"side": "HOLD"},
        {"outcome_id": "NO"},
    ],
)
def test_malformed_requests_are_validation_errors(kwargs):
    conn = MagicMock()
    args = {"account_id": "alice", "market_id": MARKET_ID, "probability": 0.5, "stake_amount": 10}
    args.update(kwargs)
    with pytest.raises(ValidationError):
        Ledger(conn).place_order(**args)
    conn.cursor.assert_not_called()


def _assert_untouched(ledger, conn, balance=10_000):
    assert ledger.get_balance("alice").amount == balance
    assert ledger.list_positions("alice") == []
    assert order_store.count_orders(conn) == 0


def test_unknown_market_is_not_found(ledger, seeded):
    with pytest.raises(NotFoundError):
        ledger.place_order("alice", "no-such-market", 0.5, 10)
    _assert_untouched(ledger, seeded)


def test_resolved_market_is_rejected_without_mutation(ledger, seeded):
    set_market_status(seeded, MARKET_ID, MarketStatus.RESOLVED)
    with pytest.raises(StateError):
        ledger.place_order("alice", MARKET_ID, 0.5, 10)
    _assert_untouched(ledger, seeded)


def test_suspended_market_is_rejected(ledger, seeded):
    set_market_status(seeded, MARKET_ID, MarketStatus.SUSPENDED)
    with pytest.raises(StateError):
        ledger.place_order("alice", MARKET_ID, 0.5, 10)


def test_multi_outcome_market_is_rejected(ledger, seeded):
    upsert_market(seeded, venue="oddgrid", title="Who wins?", market_type=MarketType.MULTI_OUTCOME, market_id="multi")
    with pytest.raises(StateError):
        ledger.place_order("alice", "multi", 0.5, 10)
    _assert_untouched(ledger, seeded)


def test_insufficient_balance_carries_amounts_and_changes_nothing(ledger, seeded):
    with pytest.raises(InsufficientBalanceError) as exc_info:
        ledger.place_order("alice", MARKET_ID, 0.5, 10_000.01)
    assert exc_info.value.available == 10_000
    assert exc_info.value.required == 10_000.01
    assert exc_info.value.to_dict()["code"] == "insufficient_balance"
    _assert_untouched(ledger, seeded)


def test_spending_entire_balance_is_allowed(ledger):
    ledger.place_order("alice", MARKET_ID, 0.5, 10_000)
    assert ledger.get_balance("alice").amount == 0


def test_account_without_balance_is_not_found(ledger, seeded):
    with pytest.raises(NotFoundError):
        ledger.place_order("nobody", MARKET_ID, 0.5, 10)
    assert order_store.count_orders(seeded) == 0


def test_failure_after_debit_rolls_back_balance(ledger, seeded, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(account_store, "upsert_position", boom)
    with pytest.raises(InternalError) as exc_info:
        ledger.place_order("alice", MARKET_ID, 0.6, 100)
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    _assert_untouched(ledger, seeded)


def test_failure_on_order_insert_keeps_prior_state(ledger, seeded, monkeypatch):
    ledger.place_order("alice", MARKET_ID, 0.6, 100)
    [before] = ledger.list_positions("alice")

    def boom(*args, **kwargs):
        raise RuntimeError("constraint violated")

    monkeypatch.setattr(order_store, "insert_order", boom)
    with pytest.raises(InternalError):
        ledger.place_order("alice", MARKET_ID, 0.4, 40)

    assert ledger.get_balance("alice").amount == 9_900
    [after] = ledger.list_positions("alice")
    assert (after.size, after.avg_price) == (before.size, before.avg_price)
    assert order_store.count_orders(seeded, "alice") == 1


def test_concurrent_orders_never_overdraw(seeded):
    ledger = Ledger(seeded)
    ledger.open_account("bob", 1_000)

    def attempt(_):
        try:
            return ledger.place_order("bob", MARKET_ID, 0.5, 100)
        except InsufficientBalanceError:
            return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(20)))

    filled = [r for r in results if r is not None]
    assert len(filled) == 10
    assert ledger.get_balance("bob").amount == 0
    [position] = ledger.list_positions("bob")
    assert position.size == pytest.approx(sum(r.fill.shares for r in filled))
    assert position.avg_price == pytest.approx(0.5)
    assert order_store.count_orders(seeded, "bob") == 10


def test_concurrent_orders_across_accounts(seeded):
    ledger = Ledger(seeded)
    accounts = ["a1", "a2", "a3", "a4"]
    for a in accounts:
        ledger.open_account(a, 500)

    jobs = [a for a in accounts for _ in range(5)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda a: ledger.place_order(a, MARKET_ID, 0.25, 20), jobs))

    for a in accounts:
        assert ledger.get_balance(a).amount == pytest.approx(400)
        [position] = ledger.list_positions(a)
        assert position.size == pytest.approx(400)


def test_account_lock_blocks_same_account_only(seeded):
    locks = AccountLocks()
    ledger = Ledger(seeded, locks=locks)
    ledger.open_account("alice", 100)
    ledger.open_account("bob", 100)
    done = threading.Event()

    def place_for_alice():
        ledger.place_order("alice", MARKET_ID, 0.5, 10)
        done.set()

    with locks.hold("alice"):
        worker = threading.Thread(target=place_for_alice)
        worker.start()
        ledger.place_order("bob", MARKET_ID, 0.5, 10)  # not blocked by alice's lock
        time.sleep(0.1)
        assert not done.is_set()
    worker.join(timeout=5)
    assert done.is_set()
    assert ledger.get_balance("alice").amount == 90
    assert ledger.get_balance("bob").amount == 90


def test_injected_lock_registry_is_used_even_when_empty(seeded):
    locks = AccountLocks()
    assert Ledger(seeded, locks=locks)._locks is locks


def test_ledgers_sharing_locks_serialize_same_account(seeded):
    locks = AccountLocks()
    first = Ledger(seeded, locks=locks)
    second = Ledger(seeded, locks=locks)
    first.open_account("erin", 1_000)

    jobs = [first, second] * 20
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda led: led.place_order("erin", MARKET_ID, 0.5, 10), jobs))

    assert len(results) == 40
    assert first.get_balance("erin").amount == pytest.approx(600)
    [position] = second.list_positions("erin")
    assert position.size == pytest.approx(800)
    assert order_store.count_orders(seeded, "erin") == 40


def test_market_status_is_checked_under_the_account_lock(seeded):
    locks = AccountLocks()
    ledger = Ledger(seeded, locks=locks)
    ledger.open_account("frank", 100)
    errors = []

    def place():
        try:
            ledger.place_order("frank", MARKET_ID, 0.5, 10)
        except StateError as e:
            errors.append(e)

    with locks.hold("frank"):
        worker = threading.Thread(target=place)
        worker.start()
        time.sleep(0.1)
        set_market_status(seeded, MARKET_ID, MarketStatus.RESOLVED)
    worker.join(timeout=5)

    assert len(errors) == 1
    assert ledger.get_balance("frank").amount == 100
    assert ledger.list_positions("frank") == []


def test_account_locks_registry():
    locks = AccountLocks()
    assert locks.get("a") is locks.get("a")
    assert locks.get("a") is not locks.get("b")
    assert len(locks) == 2


def test_open_account_is_idempotent(seeded):
    ledger = Ledger(seeded, starting_balance=250)
    assert ledger.open_account("carol").amount == 250
    ledger.place_order("carol", MARKET_ID, 0.5, 50)
    assert ledger.open_account("carol").amount == 200
    with pytest.raises(ValidationError):
        ledger.open_account("dave", -1)
