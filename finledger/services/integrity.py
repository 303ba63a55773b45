from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog

from .. import models
from ..database import atomic
from .base import LedgerService
from .reconciler import LedgerAccount

logger = structlog.get_logger(__name__)

AUTO_FIX_ACTION = "Auto-fix available"


@dataclass
class ValidationIssue:
    severity: str
    type: str
    action: str
    count: Optional[int] = None
    account_id: Optional[str] = None
    account_name: Optional[str] = None
    cached: Optional[Decimal] = None
    actual: Optional[Decimal] = None
    difference: Optional[Decimal] = None


@dataclass
class ValidationReport:
    timestamp: datetime
    issues_found: int
    issues: list[ValidationIssue]
    auto_fix_available: bool


@dataclass
class FixReport:
    timestamp: datetime
    accounts_checked: int = 0
    accounts_fixed: int = 0
    accounts_failed: int = 0
    fixed_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)


@dataclass
class ReconcileError:
    account_id: str
    error: str


@dataclass
class ReconcileSummary:
    start_time: datetime
    end_time: datetime
    duration_ms: int
    accounts_processed: int = 0
    balances_fixed: int = 0
    errors: list[ReconcileError] = field(default_factory=list)


@dataclass
class ManualReconciliationReport:
    before: ValidationReport
    orphans_cleaned: int
    fix: FixReport
    reconcile: ReconcileSummary
    after: ValidationReport


class IntegrityService(LedgerService):
    """
    Batch checks and repairs over the whole ledger.

    Everything here is either a read-only scan or built from idempotent
    primitives (recalculate, soft delete), so any job can be re-run safely.
    Per-account failures are counted in the report instead of aborting the
    batch.
    """

    def find_orphaned_transactions(self) -> list[models.Transaction]:
        """Live transactions whose account id matches no account or card."""
        known = {row.id for row in self.db.query(models.Account.id)}
        known.update(row.id for row in self.db.query(models.CreditCard.id))
        return [txn for txn in self.store.all_active() if txn.account_id not in known]

    def find_dangling_origin_links(self) -> list[models.Transaction]:
        """Live transactions linked to an expense, income or transfer that is gone."""
        dangling = []
        for txn in self.store.all_active():
            if txn.expense_id:
                expense = self.db.get(models.Expense, txn.expense_id)
                if expense is None or expense.deleted_at is not None:
                    dangling.append(txn)
            elif txn.income_id:
                income = self.db.get(models.Income, txn.income_id)
                if income is None or income.deleted_at is not None:
                    dangling.append(txn)
            elif txn.transfer_id:
                if self.db.get(models.Transfer, txn.transfer_id) is None:
                    dangling.append(txn)
        return dangling

    def find_incomplete_transfers(self) -> list[models.Transfer]:
        incomplete = []
        for transfer in self.db.query(models.Transfer).all():
            legs = [self.store.get(transfer.from_transaction_id), self.store.get(transfer.to_transaction_id)]
            if any(leg is None or leg.deleted_at is not None for leg in legs):
                incomplete.append(transfer)
        return incomplete

    def find_duplicate_transactions(self) -> list[list[models.Transaction]]:
        """Groups of live transactions sharing account, date and amount."""
        groups: dict[tuple, list[models.Transaction]] = defaultdict(list)
        for txn in self.store.all_active():
            groups[(txn.account_id, txn.date, txn.amount)].append(txn)
        return [group for group in groups.values() if len(group) > 1]

    def run_validations(self) -> ValidationReport:
        issues: list[ValidationIssue] = []

        orphaned = self.find_orphaned_transactions()
        if orphaned:
            issues.append(
                ValidationIssue(
                    severity="warning",
                    type="orphaned_transactions",
                    count=len(orphaned),
                    action="Review and delete or link to correct records",
                )
            )

        for record in self._ledger_accounts():
            check = self.reconciler.check(record.id)
            if not check.is_valid:
                issues.append(
                    ValidationIssue(
                        severity="error",
                        type="balance_discrepancy",
                        account_id=record.id,
                        account_name=record.display_name,
                        cached=check.cached,
                        actual=check.actual,
                        difference=check.difference,
                        action=AUTO_FIX_ACTION,
                    )
                )

        dangling = self.find_dangling_origin_links()
        if dangling:
            issues.append(
                ValidationIssue(
                    severity="warning",
                    type="dangling_origin_links",
                    count=len(dangling),
                    action="Review and delete or link to correct records",
                )
            )

        incomplete = self.find_incomplete_transfers()
        if incomplete:
            issues.append(
                ValidationIssue(
                    severity="error",
                    type="incomplete_transfers",
                    count=len(incomplete),
                    action="Manual review required",
                )
            )

        duplicates = self.find_duplicate_transactions()
        if duplicates:
            issues.append(
                ValidationIssue(
                    severity="warning",
                    type="possible_duplicates",
                    count=len(duplicates),
                    action="Review and merge if confirmed",
                )
            )

        report = ValidationReport(
            timestamp=models.utcnow(),
            issues_found=len(issues),
            issues=issues,
            auto_fix_available=any(AUTO_FIX_ACTION in issue.action for issue in issues),
        )
        for issue in issues:
            logger.warning(
                "ledger_issue",
                type=issue.type,
                severity=issue.severity,
                count=issue.count,
                account_id=issue.account_id,
            )
        return report

    def auto_fix_balance_discrepancies(self) -> FixReport:
        report = FixReport(timestamp=models.utcnow())
        for account_id in self._ledger_account_ids():
            report.accounts_checked += 1
            try:
                with self.locks.hold(account_id), atomic(self.db):
                    if self.reconciler.check(account_id).is_valid:
                        continue
                    self.reconciler.recalculate(account_id)
            except Exception:
                logger.exception("balance_fix_failed", account_id=account_id)
                report.failed_ids.append(account_id)
                continue
            report.fixed_ids.append(account_id)
        report.accounts_fixed = len(report.fixed_ids)
        report.accounts_failed = len(report.failed_ids)
        logger.info(
            "balance_auto_fix",
            checked=report.accounts_checked,
            fixed=report.accounts_fixed,
            failed=report.accounts_failed,
        )
        return report

    def cleanup_orphaned_transactions(self) -> int:
        """
        Soft-delete transactions whose account or origin record is gone, then
        reconcile the surviving accounts they touched. Returns how many were
        removed.
        """
        doomed = {txn.id: txn for txn in self.find_orphaned_transactions()}
        doomed.update((txn.id, txn) for txn in self.find_dangling_origin_links())
        if not doomed:
            return 0
        touched = {txn.account_id for txn in doomed.values()}
        with self.locks.hold(*touched), atomic(self.db):
            for txn_id in doomed:
                self.store.soft_delete(txn_id)
            for account_id in touched:
                record = self.reconciler.find_account(account_id)
                if record is None:
                    continue
                self.reconciler.recalculate(account_id)
                self.reconciler.refresh_snapshots(account_id)
        logger.info("orphans_cleaned", count=len(doomed), accounts=len(touched))
        return len(doomed)

    def reconcile_all_accounts(self) -> ReconcileSummary:
        start_time = models.utcnow()
        started = time.perf_counter()
        processed = 0
        errors: list[ReconcileError] = []
        for account_id in self._ledger_account_ids():
            try:
                with self.locks.hold(account_id), atomic(self.db):
                    self.reconciler.recalculate(account_id)
                    self.reconciler.refresh_snapshots(account_id)
            except Exception as exc:
                logger.exception("reconcile_failed", account_id=account_id)
                errors.append(ReconcileError(account_id=account_id, error=str(exc)))
                continue
            processed += 1
        summary = ReconcileSummary(
            start_time=start_time,
            end_time=models.utcnow(),
            duration_ms=int((time.perf_counter() - started) * 1000),
            accounts_processed=processed,
            balances_fixed=processed,
            errors=errors,
        )
        logger.info(
            "reconcile_all",
            processed=summary.accounts_processed,
            errors=len(summary.errors),
            duration_ms=summary.duration_ms,
        )
        return summary

    def run_manual_reconciliation(self) -> ManualReconciliationReport:
        before = self.run_validations()
        orphans_cleaned = self.cleanup_orphaned_transactions()
        fix = self.auto_fix_balance_discrepancies()
        reconcile = self.reconcile_all_accounts()
        after = self.run_validations()
        return ManualReconciliationReport(
            before=before,
            orphans_cleaned=orphans_cleaned,
            fix=fix,
            reconcile=reconcile,
            after=after,
        )

    def _ledger_accounts(self) -> list[LedgerAccount]:
        return [*self.db.query(models.Account).all(), *self.db.query(models.CreditCard).all()]

    def _ledger_account_ids(self) -> list[str]:
        return [record.id for record in self._ledger_accounts()]
