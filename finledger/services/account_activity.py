from __future__ import annotations

from datetime import date as date_type

import structlog

from .. import models
from ..account_types import AccountType, BankAccountSubtype, TransactionType
from ..category_labels import BALANCE_ADJUSTMENT_CATEGORY, OPENING_BALANCE_CATEGORY, canonicalize_category
from ..results import INACTIVE, INVALID_AMOUNT, NOT_FOUND, OperationResult, PostingResult, fail
from ..transaction_logic import (
    ZERO,
    Number,
    adjustment_transaction_type,
    expense_transaction_type,
    income_transaction_type,
    signed_amount,
    to_money,
)
from .base import LedgerService
from .reconciler import LedgerAccount, account_kind_of, displayed_balance

logger = structlog.get_logger(__name__)


class AccountActivityService(LedgerService):
    """Account lifecycle plus the one-sided postings: adjustments, expenses and incomes."""

    def open_account(
        self,
        *,
        name: str,
        type: AccountType | str = AccountType.BANK,
        bank_name: str | None = None,
        account_number: str | None = None,
        account_type: BankAccountSubtype | str | None = None,
        currency: str = "MXN",
        opening_balance: Number = 0,
        is_active: bool = True,
        opened_on: date_type | None = None,
    ) -> PostingResult:
        def operation() -> PostingResult:
            now = models.utcnow()
            account = models.Account(
                id=models.new_id(),
                name=name,
                type=AccountType(type).value,
                bank_name=bank_name,
                account_number=account_number,
                account_type=BankAccountSubtype(account_type).value if account_type else None,
                currency=currency,
                balance=ZERO,
                is_active=is_active,
                last_update=now,
                created_at=now,
                updated_at=now,
            )
            self.db.add(account)
            self.db.flush()
            transaction = self._post_opening_balance(account, to_money(opening_balance), opened_on)
            logger.info("account_opened", account_id=account.id, opening_balance=str(to_money(opening_balance)))
            return PostingResult(success=True, record=account, transaction=transaction)

        return self._atomically([], operation)

    def open_credit_card(
        self,
        *,
        bank: str,
        card_name: str,
        credit_limit: Number,
        last_four_digits: str | None = None,
        current_balance: Number = 0,
        cutoff_day: int | None = None,
        payment_day: int | None = None,
        interest_rate: float | None = None,
        currency: str = "MXN",
        opened_on: date_type | None = None,
    ) -> PostingResult:
        """``current_balance`` is the debt the card already carries when it is registered."""

        def operation() -> PostingResult:
            if to_money(credit_limit) < ZERO:
                return fail(PostingResult, "Credit limit cannot be negative", INVALID_AMOUNT)
            now = models.utcnow()
            card = models.CreditCard(
                id=models.new_id(),
                bank=bank,
                card_name=card_name,
                last_four_digits=last_four_digits,
                currency=currency,
                credit_limit=to_money(credit_limit),
                current_balance=ZERO,
                available_credit=to_money(credit_limit),
                cutoff_day=cutoff_day,
                payment_day=payment_day,
                interest_rate=interest_rate,
                last_update=now,
                created_at=now,
                updated_at=now,
            )
            self.db.add(card)
            self.db.flush()
            transaction = self._post_opening_balance(card, to_money(current_balance), opened_on)
            logger.info("credit_card_opened", card_id=card.id, opening_debt=str(to_money(current_balance)))
            return PostingResult(success=True, record=card, transaction=transaction)

        return self._atomically([], operation)

    def delete_account(self, account_id: str) -> OperationResult:
        """
        Remove an account or card row. Its transactions stay behind as
        orphans until the integrity cleanup soft-deletes them.
        """

        def operation() -> OperationResult:
            record = self.reconciler.find_account(account_id)
            if record is None:
                return fail(OperationResult, "Account not found", NOT_FOUND)
            left_behind = len(self.store.by_account(account_id))
            self.db.delete(record)
            self.db.flush()
            logger.info("account_deleted", account_id=account_id, transactions_left=left_behind)
            return OperationResult(success=True)

        return self._atomically([account_id], operation)

    def adjust_balance(
        self,
        account_id: str,
        new_balance: Number,
        note: str | None = None,
        adjusted_on: date_type | None = None,
    ) -> PostingResult:
        """
        Bring an account (or a card's debt) to ``new_balance`` by appending an
        adjustment transaction for the difference.
        """
        target = to_money(new_balance)

        def operation() -> PostingResult:
            record = self.reconciler.find_account(account_id)
            if record is None:
                return fail(PostingResult, "Account not found", NOT_FOUND)
            # work from the ledger, not from a possibly drifted cached value
            self.reconciler.recalculate(account_id)
            current = displayed_balance(record)
            difference = to_money(target - current)
            if difference == ZERO:
                return PostingResult(success=True, record=record)
            ledger_difference = difference
            if isinstance(record, models.CreditCard):
                ledger_difference = to_money(-difference)
            adjustment_type = adjustment_transaction_type(ledger_difference)
            transaction = self.store.append(
                account_id=record.id,
                account_kind=account_kind_of(record),
                amount=ledger_difference,
                type=adjustment_type,
                date=adjusted_on or date_type.today(),
                description=note or f"Balance adjustment from {current:.2f} to {target:.2f}",
                category=BALANCE_ADJUSTMENT_CATEGORY,
            )
            transaction.balance = self.reconciler.recalculate(record.id)
            self.db.flush()
            logger.info(
                "balance_adjusted",
                account_id=record.id,
                previous=str(current),
                target=str(target),
                type=adjustment_type.value,
            )
            return PostingResult(success=True, record=record, transaction=transaction)

        return self._atomically([account_id], operation)

    def post_expense(
        self,
        *,
        amount: Number,
        category: str,
        date: date_type | None = None,
        description: str = "",
        account_id: str | None = None,
    ) -> PostingResult:
        value = to_money(amount)
        when = date or date_type.today()

        def operation() -> PostingResult:
            if value <= ZERO:
                return fail(PostingResult, "Amount must be positive", INVALID_AMOUNT)
            record, rejected = self._posting_account(account_id)
            if rejected is not None:
                return rejected
            expense = models.Expense(
                id=models.new_id(),
                date=when,
                amount=value,
                category=canonicalize_category(category) or category,
                description=description,
                account_id=record.id if record is not None else None,
                account_kind=account_kind_of(record).value if record is not None else None,
            )
            self.db.add(expense)
            self.db.flush()
            transaction = None
            if record is not None:
                kind = account_kind_of(record)
                transaction = self._post(
                    record,
                    signed_amount(value, expense_transaction_type(kind)),
                    expense_transaction_type(kind),
                    when,
                    description or expense.category,
                    expense.category,
                    expense_id=expense.id,
                )
            logger.info("expense_posted", expense_id=expense.id, account_id=expense.account_id, amount=str(value))
            return PostingResult(success=True, record=expense, transaction=transaction)

        return self._atomically([account_id], operation)

    def post_income(
        self,
        *,
        amount: Number,
        category: str,
        date: date_type | None = None,
        description: str = "",
        source: str | None = None,
        account_id: str | None = None,
    ) -> PostingResult:
        value = to_money(amount)
        when = date or date_type.today()

        def operation() -> PostingResult:
            if value <= ZERO:
                return fail(PostingResult, "Amount must be positive", INVALID_AMOUNT)
            record, rejected = self._posting_account(account_id)
            if rejected is not None:
                return rejected
            income = models.Income(
                id=models.new_id(),
                date=when,
                amount=value,
                category=canonicalize_category(category) or category,
                description=description,
                source=source,
                account_id=record.id if record is not None else None,
                account_kind=account_kind_of(record).value if record is not None else None,
            )
            self.db.add(income)
            self.db.flush()
            transaction = None
            if record is not None:
                kind = account_kind_of(record)
                transaction = self._post(
                    record,
                    signed_amount(value, income_transaction_type(kind)),
                    income_transaction_type(kind),
                    when,
                    description or source or income.category,
                    income.category,
                    income_id=income.id,
                )
            logger.info("income_posted", income_id=income.id, account_id=income.account_id, amount=str(value))
            return PostingResult(success=True, record=income, transaction=transaction)

        return self._atomically([account_id], operation)

    def delete_expense(self, expense_id: str) -> PostingResult:
        existing = self.db.get(models.Expense, expense_id)
        if existing is None or existing.deleted_at is not None:
            return fail(PostingResult, "Expense not found", NOT_FOUND)

        def operation() -> PostingResult:
            expense = self.db.get(models.Expense, expense_id)
            if expense is None or expense.deleted_at is not None:
                return fail(PostingResult, "Expense not found", NOT_FOUND)
            expense.deleted_at = models.utcnow()
            self._void_all(self.store.by_expense(expense.id))
            logger.info("expense_deleted", expense_id=expense.id)
            return PostingResult(success=True, record=expense)

        return self._atomically([existing.account_id], operation)

    def delete_income(self, income_id: str) -> PostingResult:
        existing = self.db.get(models.Income, income_id)
        if existing is None or existing.deleted_at is not None:
            return fail(PostingResult, "Income not found", NOT_FOUND)

        def operation() -> PostingResult:
            income = self.db.get(models.Income, income_id)
            if income is None or income.deleted_at is not None:
                return fail(PostingResult, "Income not found", NOT_FOUND)
            income.deleted_at = models.utcnow()
            self._void_all(self.store.by_income(income.id))
            logger.info("income_deleted", income_id=income.id)
            return PostingResult(success=True, record=income)

        return self._atomically([existing.account_id], operation)

    def _posting_account(self, account_id: str | None):
        if not account_id:
            return None, None
        record = self.reconciler.find_account(account_id)
        if record is None:
            return None, fail(PostingResult, "Account not found", NOT_FOUND)
        if isinstance(record, models.Account) and not record.is_active:
            return None, fail(PostingResult, "Account is inactive", INACTIVE)
        return record, None

    def _post_opening_balance(
        self,
        record: LedgerAccount,
        opening: Number,
        opened_on: date_type | None,
    ) -> models.Transaction | None:
        opening = to_money(opening)
        if opening == ZERO:
            return None
        is_card = isinstance(record, models.CreditCard)
        # a card opens with debt, which its own ledger records as a charge
        if is_card:
            opening_type = TransactionType.CHARGE if opening > ZERO else TransactionType.REFUND
        else:
            opening_type = TransactionType.DEPOSIT if opening > ZERO else TransactionType.WITHDRAWAL
        transaction = self._post(
            record,
            signed_amount(opening, opening_type),
            opening_type,
            opened_on or date_type.today(),
            "Opening balance",
            OPENING_BALANCE_CATEGORY,
        )
        return transaction

    def _post(
        self,
        record: LedgerAccount,
        amount: Number,
        transaction_type: TransactionType,
        when: date_type,
        description: str,
        category: str | None,
        expense_id: str | None = None,
        income_id: str | None = None,
    ) -> models.Transaction:
        transaction = self.store.append(
            account_id=record.id,
            account_kind=account_kind_of(record),
            amount=amount,
            type=transaction_type,
            date=when,
            description=description,
            category=category,
            expense_id=expense_id,
            income_id=income_id,
        )
        self.reconciler.recalculate(record.id)
        # backdated postings shift every later running balance
        self.reconciler.refresh_snapshots(record.id)
        return transaction

    def _void_all(self, transactions: list[models.Transaction]) -> None:
        touched = set()
        for transaction in transactions:
            self.store.soft_delete(transaction.id)
            touched.add(transaction.account_id)
        for account_id in touched:
            if self.reconciler.find_account(account_id) is None:
                continue
            self.reconciler.recalculate(account_id)
            self.reconciler.refresh_snapshots(account_id)
        self.db.flush()
