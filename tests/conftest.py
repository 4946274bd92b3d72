"""Shared fixtures: temp DuckDB store, seeded markets, funded ledger."""

import pytest

from oddgrid.ledger import Ledger
from oddgrid.storage.db import get_connection, init_schema
from oddgrid.storage.seed import seed_reference_data


@pytest.fixture
def conn(tmp_path):
    c = get_connection(tmp_path / "test.duckdb")
    init_schema(c)
    yield c
    c.close()


@pytest.fixture
def seeded(conn):
    seed_reference_data(conn)
    return conn


@pytest.fixture
def ledger(seeded):
    led = Ledger(seeded, currency="USDV")
    led.open_account("alice", 10_000)
    return led
