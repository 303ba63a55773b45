from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

import structlog
from sqlalchemy.orm import Session

from .. import models
from ..account_types import AccountKind
from ..errors import AccountNotFoundError
from ..transaction_logic import ZERO, available_credit, debt_from_ledger_total, to_money
from .ledger_store import LedgerStore

logger = structlog.get_logger(__name__)

LedgerAccount = Union[models.Account, models.CreditCard]


@dataclass
class BalanceCheck:
    account_id: str
    is_valid: bool
    cached: Decimal
    actual: Decimal
    difference: Decimal


def account_kind_of(record: LedgerAccount) -> AccountKind:
    return AccountKind.CREDIT if isinstance(record, models.CreditCard) else AccountKind.BANK


def displayed_balance(record: LedgerAccount) -> Decimal:
    """Bank accounts show their balance, cards show their debt."""
    if isinstance(record, models.CreditCard):
        return to_money(record.current_balance)
    return to_money(record.balance)


class BalanceReconciler:
    """
    Single authority for what a balance should be.

    Every code path that adds, edits or soft-deletes a transaction ends by
    calling ``recalculate`` for the accounts it touched; nothing else writes
    ``Account.balance`` or ``CreditCard.current_balance``.
    """

    def __init__(self, db: Session, store: LedgerStore, tolerance: float = 0.01):
        self.db = db
        self.store = store
        self.tolerance = to_money(tolerance)

    def find_account(self, account_id: str | None) -> LedgerAccount | None:
        if not account_id:
            return None
        account = self.db.get(models.Account, account_id)
        if account is not None:
            return account
        return self.db.get(models.CreditCard, account_id)

    def ledger_total(self, account_id: str) -> Decimal:
        return to_money(sum((txn.amount for txn in self.store.by_account(account_id)), ZERO))

    def expected_balance(self, record: LedgerAccount) -> Decimal:
        raw_total = self.ledger_total(record.id)
        if isinstance(record, models.CreditCard):
            return debt_from_ledger_total(raw_total)
        return raw_total

    def recalculate(self, account_id: str) -> Decimal:
        """
        Recompute the stored balance of an account or card from its live
        transactions and persist it. Returns the displayed balance.

        A card's debt is never floored here. Settling a card at zero is
        written into its ledger by the transfer engine.
        """
        record = self.find_account(account_id)
        if record is None:
            raise AccountNotFoundError(account_id)

        raw_total = self.ledger_total(account_id)
        if isinstance(record, models.CreditCard):
            debt = debt_from_ledger_total(raw_total)
            record.current_balance = debt
            record.available_credit = available_credit(record.credit_limit, debt)
        else:
            record.balance = raw_total
        record.last_update = models.utcnow()
        self.db.flush()
        return displayed_balance(record)

    def check(self, account_id: str) -> BalanceCheck:
        record = self.find_account(account_id)
        if record is None:
            raise AccountNotFoundError(account_id)
        cached = displayed_balance(record)
        actual = self.expected_balance(record)
        difference = abs(cached - actual)
        return BalanceCheck(
            account_id=account_id,
            is_valid=difference < self.tolerance,
            cached=cached,
            actual=actual,
            difference=difference,
        )

    def refresh_snapshots(self, account_id: str) -> None:
        """Rewrite the running balance stored on each transaction, oldest first."""
        record = self.find_account(account_id)
        if record is None:
            raise AccountNotFoundError(account_id)
        is_card = isinstance(record, models.CreditCard)
        transactions = sorted(
            self.store.by_account(account_id),
            key=lambda txn: (txn.date, txn.created_at),
        )
        running = ZERO
        for txn in transactions:
            running = to_money(running + txn.amount)
            txn.balance = debt_from_ledger_total(running) if is_card else running
        self.db.flush()
        logger.debug("snapshots_refreshed", account_id=account_id, transactions=len(transactions))
