"""Per-account mutex registry."""

from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from threading import Lock
from typing import Iterator


class AccountLocks:
    """One lock per account key; calls for different accounts never contend."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, Lock] = defaultdict(Lock)
        self._guard = Lock()

    def get(self, account_id: str) -> Lock:
        with self._guard:
            return self._locks[account_id]

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        lock = self.get(account_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
