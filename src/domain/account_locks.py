from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from .base_types import AccountId
from .errors import LockTimeoutError


class AccountLocks:
    """Per-account re-entrant mutual exclusion.

    Several accounts are always acquired in ascending id order, so two transfers over the
    same pair of accounts in opposite directions cannot deadlock. Re-entrancy lets a
    transfer hold both accounts while the transaction store locks them again per leg.
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout if timeout is not None and timeout > 0 else None
        self._guard = threading.Lock()
        self._locks: dict[AccountId, threading.RLock] = {}

    @contextmanager
    def hold(self, *account_ids: AccountId) -> Iterator[None]:
        acquired: list[threading.RLock] = []
        try:
            for account_id in sorted(set(account_ids), key=str):
                lock = self._lock_for(account_id)
                if not lock.acquire(timeout=-1 if self._timeout is None else self._timeout):
                    raise LockTimeoutError(account_id=account_id, timeout=self._timeout or 0.0)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def _lock_for(self, account_id: AccountId) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[account_id] = lock
            return lock


__all__ = ["AccountLocks"]
