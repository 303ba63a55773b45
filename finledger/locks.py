from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from typing import Iterator


class AccountLocks:
    """One lock per account id so two writers never interleave on the same ledger."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, account_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[account_id] = lock
            return lock

    @contextmanager
    def hold(self, *account_ids: str | None) -> Iterator[None]:
        # sorted acquisition order keeps two multi-account writers from deadlocking
        ids = sorted({account_id for account_id in account_ids if account_id})
        with ExitStack() as stack:
            for account_id in ids:
                stack.enter_context(self._lock_for(account_id))
            yield
