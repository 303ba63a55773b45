from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from .. import models
from ..account_types import AccountKind, TransactionType
from ..category_labels import canonicalize_category
from ..errors import TransactionNotFoundError
from ..transaction_logic import Number, to_money


class LedgerStore:
    """
    Persistence for the append-only transaction log.

    The store never touches account balances and never checks that the
    owning account exists; callers validate first and reconcile afterwards.
    Writes are flushed, not committed, so a caller can group several of
    them into one atomic unit.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        *,
        account_id: str,
        account_kind: AccountKind | str,
        amount: Number,
        type: TransactionType | str,
        date: date,
        description: str = "",
        category: str | None = None,
        balance: Number = 0,
        pending: bool = False,
        related_transaction_id: str | None = None,
        transfer_id: str | None = None,
        expense_id: str | None = None,
        income_id: str | None = None,
    ) -> models.Transaction:
        now = models.utcnow()
        txn = models.Transaction(
            id=models.new_id(),
            account_id=account_id,
            account_kind=AccountKind(account_kind).value,
            date=date,
            amount=to_money(amount),
            type=TransactionType(type).value,
            description=description,
            category=canonicalize_category(category),
            balance=to_money(balance),
            pending=pending,
            related_transaction_id=related_transaction_id,
            transfer_id=transfer_id,
            expense_id=expense_id,
            income_id=income_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(txn)
        self.db.flush()
        return txn

    def update(self, transaction_id: str, **fields: Any) -> models.Transaction:
        txn = self.get(transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        for name, value in fields.items():
            if not hasattr(models.Transaction, name):
                raise AttributeError(f"Transaction has no field {name!r}")
            if name in ("amount", "balance"):
                value = to_money(value)
            elif name == "category":
                value = canonicalize_category(value)
            setattr(txn, name, value)
        txn.updated_at = models.utcnow()
        self.db.flush()
        return txn

    def soft_delete(self, transaction_id: str) -> models.Transaction:
        txn = self.get(transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        if txn.deleted_at is None:
            now = models.utcnow()
            txn.deleted_at = now
            txn.updated_at = now
            self.db.flush()
        return txn

    def get(self, transaction_id: str | None) -> models.Transaction | None:
        if not transaction_id:
            return None
        return self.db.get(models.Transaction, transaction_id)

    def by_account(self, account_id: str) -> list[models.Transaction]:
        return (
            self.db.query(models.Transaction)
            .filter(
                models.Transaction.account_id == account_id,
                models.Transaction.deleted_at.is_(None),
            )
            .all()
        )

    def by_transfer(self, transfer_id: str) -> list[models.Transaction]:
        return self._active().filter(models.Transaction.transfer_id == transfer_id).all()

    def by_expense(self, expense_id: str) -> list[models.Transaction]:
        return self._active().filter(models.Transaction.expense_id == expense_id).all()

    def by_income(self, income_id: str) -> list[models.Transaction]:
        return self._active().filter(models.Transaction.income_id == income_id).all()

    def all_active(self) -> list[models.Transaction]:
        return self._active().all()

    def list_transactions(self, account_id: str | None = None, include_deleted: bool = False) -> list[models.Transaction]:
        query = self.db.query(models.Transaction)
        if not include_deleted:
            query = query.filter(models.Transaction.deleted_at.is_(None))
        if account_id is not None:
            query = query.filter(models.Transaction.account_id == account_id)
        return query.order_by(models.Transaction.date.desc(), models.Transaction.created_at.desc()).all()

    def _active(self):
        return self.db.query(models.Transaction).filter(models.Transaction.deleted_at.is_(None))
