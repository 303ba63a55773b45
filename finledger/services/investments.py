from __future__ import annotations

from dataclasses import dataclass
from datetime import date as date_type
from decimal import Decimal
from typing import Iterable

import structlog

from .. import models
from ..account_types import AccountKind, TransactionType
from ..category_labels import INVESTMENT_CATEGORY
from ..results import (
    INACTIVE,
    INSUFFICIENT_FUNDS,
    INVALID_AMOUNT,
    NOT_FOUND,
    BulkLinkResult,
    ContributionResult,
    InvestmentResult,
    WithdrawalResult,
    fail,
)
from ..transaction_logic import ZERO, Number, signed_amount, to_money
from .base import LedgerService

logger = structlog.get_logger(__name__)


@dataclass
class MigrationStatus:
    total: int
    linked: int
    unlinked: int
    needs_migration: bool


def _dollars(value: Decimal) -> str:
    return f"${value:.2f}"


class InvestmentService(LedgerService):
    """
    Moves money between bank accounts and investments.

    The account side always goes through the ledger: a ``withdrawal``
    transaction funds an investment, a ``deposit`` transaction receives a
    payout, and the reconciler sets the account balance from there.
    """

    def create_investment(
        self,
        *,
        platform: str,
        type: str,
        initial_capital: Number,
        start_date: date_type | None = None,
        gat_percentage: float = 0.0,
        auto_reinvest: bool = False,
        source_account_id: str | None = None,
    ) -> InvestmentResult:
        capital = to_money(initial_capital)
        start = start_date or date_type.today()

        def operation() -> InvestmentResult:
            if capital <= ZERO:
                return fail(InvestmentResult, "Amount must be positive", INVALID_AMOUNT)
            transaction = None
            if source_account_id:
                account, rejected = self._account_for_deduction(source_account_id, capital, InvestmentResult)
                if rejected is not None:
                    return rejected
                transaction = self._post(
                    account,
                    capital,
                    TransactionType.WITHDRAWAL,
                    start,
                    f"Investment in {platform} - {type}",
                )
            now = models.utcnow()
            investment = models.Investment(
                id=models.new_id(),
                platform=platform,
                type=type,
                initial_capital=capital,
                start_date=start,
                gat_percentage=gat_percentage,
                accumulated_returns=ZERO,
                current_value=capital,
                last_update=now,
                auto_reinvest=auto_reinvest,
                source_account_id=source_account_id or None,
            )
            self.db.add(investment)
            self.db.flush()
            logger.info(
                "investment_created",
                investment_id=investment.id,
                initial_capital=str(capital),
                source_account_id=source_account_id,
            )
            return InvestmentResult(success=True, investment=investment, transaction=transaction)

        return self._atomically([source_account_id], operation)

    def add_contribution(
        self,
        investment_id: str,
        amount: Number,
        source_account_id: str | None = None,
        source: str | None = None,
        contribution_date: date_type | None = None,
    ) -> ContributionResult:
        value = to_money(amount)
        when = contribution_date or date_type.today()

        def operation() -> ContributionResult:
            investment = self.get(investment_id)
            if investment is None:
                return fail(ContributionResult, "Investment not found", NOT_FOUND)
            if value <= ZERO:
                return fail(ContributionResult, "Amount must be positive", INVALID_AMOUNT)
            transaction = None
            if source_account_id:
                account, rejected = self._account_for_deduction(source_account_id, value, ContributionResult)
                if rejected is not None:
                    return rejected
                transaction = self._post(
                    account,
                    value,
                    TransactionType.WITHDRAWAL,
                    when,
                    f"Contribution to {investment.platform} - {investment.type}",
                )
            contribution = models.InvestmentContribution(
                id=models.new_id(),
                investment_id=investment.id,
                date=when,
                amount=value,
                source=source,
                source_account_id=source_account_id or None,
                transaction_id=transaction.id if transaction is not None else None,
                created_at=models.utcnow(),
            )
            self.db.add(contribution)
            investment.current_value = to_money(to_money(investment.current_value) + value)
            investment.last_update = models.utcnow()
            self.db.flush()
            logger.info("contribution_added", investment_id=investment.id, amount=str(value))
            return ContributionResult(success=True, contribution=contribution, transaction=transaction)

        return self._atomically([investment_id, source_account_id], operation)

    def process_withdrawal(
        self,
        investment_id: str,
        amount: Number,
        destination_account_id: str | None = None,
        reason: str | None = None,
        withdrawal_date: date_type | None = None,
    ) -> WithdrawalResult:
        value = to_money(amount)
        when = withdrawal_date or date_type.today()

        def operation() -> WithdrawalResult:
            investment = self.get(investment_id)
            if investment is None:
                return fail(WithdrawalResult, "Investment not found", NOT_FOUND)
            if value <= ZERO:
                return fail(WithdrawalResult, "Amount must be positive", INVALID_AMOUNT)
            current_value = to_money(investment.current_value)
            if value > current_value:
                return fail(
                    WithdrawalResult,
                    f"Insufficient funds in investment. Available: {_dollars(current_value)}, "
                    f"Requested: {_dollars(value)}",
                    INSUFFICIENT_FUNDS,
                )
            transaction = None
            if destination_account_id:
                account, rejected = self._account_for_deposit(destination_account_id, WithdrawalResult)
                if rejected is not None:
                    return rejected
                transaction = self._post(
                    account,
                    value,
                    TransactionType.DEPOSIT,
                    when,
                    f"Withdrawal from {investment.platform} - {investment.type}",
                )
            withdrawal = models.InvestmentWithdrawal(
                id=models.new_id(),
                investment_id=investment.id,
                date=when,
                amount=value,
                reason=reason,
                destination_account_id=destination_account_id or None,
                transaction_id=transaction.id if transaction is not None else None,
                created_at=models.utcnow(),
            )
            self.db.add(withdrawal)
            investment.current_value = to_money(current_value - value)
            investment.last_update = models.utcnow()
            self.db.flush()
            logger.info("withdrawal_processed", investment_id=investment.id, amount=str(value))
            return WithdrawalResult(success=True, withdrawal=withdrawal, transaction=transaction)

        return self._atomically([investment_id, destination_account_id], operation)

    def delete_contribution(self, contribution_id: str) -> ContributionResult:
        existing = self.db.get(models.InvestmentContribution, contribution_id)
        if existing is None or existing.deleted_at is not None:
            return fail(ContributionResult, "Contribution not found", NOT_FOUND)

        def operation() -> ContributionResult:
            contribution = self.db.get(models.InvestmentContribution, contribution_id)
            if contribution is None or contribution.deleted_at is not None:
                return fail(ContributionResult, "Contribution not found", NOT_FOUND)
            contribution.deleted_at = models.utcnow()
            investment = self.get(contribution.investment_id)
            if investment is not None:
                investment.current_value = to_money(to_money(investment.current_value) - to_money(contribution.amount))
                investment.last_update = models.utcnow()
            transaction = self._void(contribution.transaction_id)
            self.db.flush()
            logger.info("contribution_deleted", contribution_id=contribution.id)
            return ContributionResult(success=True, contribution=contribution, transaction=transaction)

        return self._atomically([existing.investment_id, existing.source_account_id], operation)

    def delete_withdrawal(self, withdrawal_id: str) -> WithdrawalResult:
        existing = self.db.get(models.InvestmentWithdrawal, withdrawal_id)
        if existing is None or existing.deleted_at is not None:
            return fail(WithdrawalResult, "Withdrawal not found", NOT_FOUND)

        def operation() -> WithdrawalResult:
            withdrawal = self.db.get(models.InvestmentWithdrawal, withdrawal_id)
            if withdrawal is None or withdrawal.deleted_at is not None:
                return fail(WithdrawalResult, "Withdrawal not found", NOT_FOUND)
            withdrawal.deleted_at = models.utcnow()
            investment = self.get(withdrawal.investment_id)
            if investment is not None:
                investment.current_value = to_money(to_money(investment.current_value) + to_money(withdrawal.amount))
                investment.last_update = models.utcnow()
            transaction = self._void(withdrawal.transaction_id)
            self.db.flush()
            logger.info("withdrawal_deleted", withdrawal_id=withdrawal.id)
            return WithdrawalResult(success=True, withdrawal=withdrawal, transaction=transaction)

        return self._atomically([existing.investment_id, existing.destination_account_id], operation)

    def get(self, investment_id: str) -> models.Investment | None:
        return self.db.get(models.Investment, investment_id)

    def list_investments(self) -> list[models.Investment]:
        return self.db.query(models.Investment).order_by(models.Investment.start_date.desc()).all()

    def get_contributions(self, investment_id: str) -> list[models.InvestmentContribution]:
        return (
            self.db.query(models.InvestmentContribution)
            .filter(
                models.InvestmentContribution.investment_id == investment_id,
                models.InvestmentContribution.deleted_at.is_(None),
            )
            .order_by(models.InvestmentContribution.date, models.InvestmentContribution.created_at)
            .all()
        )

    def get_withdrawals(self, investment_id: str) -> list[models.InvestmentWithdrawal]:
        return (
            self.db.query(models.InvestmentWithdrawal)
            .filter(
                models.InvestmentWithdrawal.investment_id == investment_id,
                models.InvestmentWithdrawal.deleted_at.is_(None),
            )
            .order_by(models.InvestmentWithdrawal.date, models.InvestmentWithdrawal.created_at)
            .all()
        )

    def get_total_invested(self, investment_id: str) -> Decimal:
        """initial capital + contributions - withdrawals; 0 for an unknown investment."""
        investment = self.get(investment_id)
        if investment is None:
            return ZERO
        contributed = sum((to_money(c.amount) for c in self.get_contributions(investment_id)), ZERO)
        withdrawn = sum((to_money(w.amount) for w in self.get_withdrawals(investment_id)), ZERO)
        return to_money(to_money(investment.initial_capital) + contributed - withdrawn)

    def link_investment_to_account(self, investment_id: str, source_account_id: str) -> InvestmentResult:
        """
        Record the source account of an investment created before accounts
        were tracked. The money already left that account, so nothing is
        posted to the ledger.
        """

        def operation() -> InvestmentResult:
            investment = self.get(investment_id)
            if investment is None:
                return fail(InvestmentResult, "Investment not found", NOT_FOUND)
            if self.db.get(models.Account, source_account_id) is None:
                return fail(InvestmentResult, "Account not found", NOT_FOUND)
            investment.source_account_id = source_account_id
            self.db.flush()
            logger.info("investment_linked", investment_id=investment.id, source_account_id=source_account_id)
            return InvestmentResult(success=True, investment=investment)

        return self._atomically([investment_id, source_account_id], operation)

    def bulk_link_investments(self, links: Iterable[tuple[str, str]]) -> BulkLinkResult:
        """Link each (investment id, account id) pair; one bad pair does not stop the rest."""
        report = BulkLinkResult(success=True)
        for investment_id, source_account_id in links:
            result = self.link_investment_to_account(investment_id, source_account_id)
            if result.success:
                report.success_count += 1
            else:
                report.fail_count += 1
                report.errors.append(f"Investment {investment_id}: {result.error}")
        report.success = report.fail_count == 0
        return report

    def get_unlinked_investments(self) -> list[models.Investment]:
        return (
            self.db.query(models.Investment)
            .filter(models.Investment.source_account_id.is_(None))
            .order_by(models.Investment.start_date.desc())
            .all()
        )

    def get_migration_status(self) -> MigrationStatus:
        total = self.db.query(models.Investment).count()
        unlinked = len(self.get_unlinked_investments())
        return MigrationStatus(
            total=total,
            linked=total - unlinked,
            unlinked=unlinked,
            needs_migration=unlinked > 0,
        )

    def _account_for_deduction(self, account_id: str, amount: Decimal, result_type: type):
        account, rejected = self._account_for_deposit(account_id, result_type)
        if rejected is not None:
            return None, rejected
        balance = to_money(account.balance)
        if balance < amount:
            return None, fail(
                result_type,
                f"Insufficient funds. Available: {_dollars(balance)}, Required: {_dollars(amount)}",
                INSUFFICIENT_FUNDS,
            )
        return account, None

    def _account_for_deposit(self, account_id: str, result_type: type):
        account = self.db.get(models.Account, account_id)
        if account is None:
            return None, fail(result_type, "Account not found", NOT_FOUND)
        if not account.is_active:
            return None, fail(result_type, "Account is inactive", INACTIVE)
        return account, None

    def _post(
        self,
        account: models.Account,
        amount: Decimal,
        transaction_type: TransactionType,
        when: date_type,
        description: str,
    ) -> models.Transaction:
        transaction = self.store.append(
            account_id=account.id,
            account_kind=AccountKind.BANK,
            amount=signed_amount(amount, transaction_type),
            type=transaction_type,
            date=when,
            description=description,
            category=INVESTMENT_CATEGORY,
        )
        transaction.balance = self.reconciler.recalculate(account.id)
        self.db.flush()
        return transaction

    def _void(self, transaction_id: str | None) -> models.Transaction | None:
        transaction = self.store.get(transaction_id)
        if transaction is None:
            return None
        self.store.soft_delete(transaction.id)
        if self.reconciler.find_account(transaction.account_id) is not None:
            self.reconciler.recalculate(transaction.account_id)
            self.reconciler.refresh_snapshots(transaction.account_id)
        return transaction
