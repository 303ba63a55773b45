from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from . import models
from .config import Settings, get_settings
from .database import atomic, get_db
from .errors import ImmutableFieldError, TransactionNotFoundError
from .locks import AccountLocks
from .results import NOT_FOUND, OperationResult
from .services.account_activity import AccountActivityService
from .services.integrity import IntegrityService
from .services.investments import InvestmentService
from .services.ledger_store import LedgerStore
from .services.reconciler import BalanceReconciler
from .services.transfers import TransferEngine

# Fields the balance chain depends on; they only change through the services.
IMMUTABLE_TRANSACTION_FIELDS = {
    "account_id",
    "account_kind",
    "amount",
    "type",
    "transfer_id",
    "expense_id",
    "income_id",
    "related_transaction_id",
    "deleted_at",
}


class Ledger:
    """All ledger services bound to one session and the process-wide lock registry."""

    def __init__(self, db: Session, locks: AccountLocks, settings: Settings | None = None):
        settings = settings or get_settings()
        self.db = db
        self.locks = locks
        self.store = LedgerStore(db)
        self.reconciler = BalanceReconciler(db, self.store, tolerance=settings.balance_tolerance)
        parts = (db, self.store, self.reconciler, locks)
        self.transfers = TransferEngine(*parts)
        self.investments = InvestmentService(*parts)
        self.activity = AccountActivityService(*parts)
        self.integrity = IntegrityService(*parts)

    def update_transaction(self, transaction_id: str, **fields: Any) -> models.Transaction:
        """Edit the descriptive fields of a transaction (description, category, date, pending)."""
        blocked = IMMUTABLE_TRANSACTION_FIELDS & set(fields)
        if blocked:
            raise ImmutableFieldError(blocked)
        txn = self.store.get(transaction_id)
        if txn is None or txn.deleted_at is not None:
            raise TransactionNotFoundError(transaction_id)
        if "date" in fields and txn.transfer_id:
            # transfer legs are re-dated together through the transfer
            raise ImmutableFieldError({"date"})
        with self.locks.hold(txn.account_id), atomic(self.db):
            txn = self.store.update(transaction_id, **fields)
            if "date" in fields and self.reconciler.find_account(txn.account_id) is not None:
                self.reconciler.refresh_snapshots(txn.account_id)
        return txn

    def recalculate(self, account_id: str):
        with self.locks.hold(account_id), atomic(self.db):
            balance = self.reconciler.recalculate(account_id)
            self.reconciler.refresh_snapshots(account_id)
        return balance


def get_ledger(request: Request, db: Session = Depends(get_db)) -> Ledger:
    return Ledger(db, request.app.state.account_locks)


def raise_for_failure(result: OperationResult) -> None:
    """Turn a failed service result into the matching HTTP error."""
    if result.success:
        return
    status_code = 404 if result.error_code == NOT_FOUND else 400
    raise HTTPException(status_code=status_code, detail=result.error)
