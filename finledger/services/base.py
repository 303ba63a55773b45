from __future__ import annotations

from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from ..locks import AccountLocks
from ..results import OperationResult
from .ledger_store import LedgerStore
from .reconciler import BalanceReconciler

R = TypeVar("R", bound=OperationResult)


class LedgerService:
    def __init__(
        self,
        db: Session,
        store: LedgerStore,
        reconciler: BalanceReconciler,
        locks: AccountLocks,
    ):
        self.db = db
        self.store = store
        self.reconciler = reconciler
        self.locks = locks

    def _atomically(self, account_ids: list[str | None], operation: Callable[[], R]) -> R:
        """
        Run ``operation`` while holding the locks of ``account_ids``.

        A successful result is committed as one unit; a failed result or an
        exception rolls back everything the operation wrote.
        """
        with self.locks.hold(*account_ids):
            # balances read before the lock was taken may be stale
            self.db.expire_all()
            try:
                result = operation()
            except Exception:
                self.db.rollback()
                raise
            if result.success:
                self.db.commit()
            else:
                self.db.rollback()
            return result
