from __future__ import annotations

from datetime import date as date_type
from decimal import Decimal

import structlog
from sqlalchemy import or_

from .. import models
from ..account_types import AccountKind, TransactionType, TransferStatus, parse_account_kind
from ..category_labels import ACCOUNT_TRANSFER_CATEGORY, CARD_SETTLEMENT_CATEGORY, TRANSFER_FEE_CATEGORY
from ..results import (
    EXCEEDS_CREDIT,
    INSUFFICIENT_FUNDS,
    INVALID_AMOUNT,
    NOT_FOUND,
    SAME_ACCOUNT,
    TransferResult,
    ValidationResult,
    fail,
)
from ..transaction_logic import (
    ZERO,
    Number,
    expense_transaction_type,
    signed_amount,
    to_money,
    transfer_leg_amounts,
)
from .base import LedgerService
from .reconciler import LedgerAccount, account_kind_of

logger = structlog.get_logger(__name__)


class TransferEngine(LedgerService):
    """
    Moves money between two accounts as a linked pair of ledger legs.

    A completed transfer always owns exactly two live transactions: a debit
    on the source and a credit of the same size on the destination, dated
    alike and pointing at each other. An optional fee is a third, one-sided
    transaction on the source that the transfer references but that does not
    carry the transfer id.

    Paying a card past zero settles it at zero: the excess is written off
    with a settlement entry on the card, referenced the same way as the fee,
    so the card's ledger always sums to its settled debt.
    """

    def validate(self, from_account_id: str, from_kind: AccountKind | str | None, amount: Number) -> ValidationResult:
        source = self._lookup(from_account_id, from_kind)
        if source is None:
            return ValidationResult(valid=False, error="Source account not found", error_code=NOT_FOUND)
        return self._check_funds(source, to_money(amount))

    def create_transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Number,
        date: date_type | None = None,
        description: str = "",
        fee: Number | None = None,
    ) -> TransferResult:
        return self._atomically(
            [from_account_id, to_account_id],
            lambda: self._create(
                from_account_id,
                to_account_id,
                to_money(amount),
                date or date_type.today(),
                description or "",
                to_money(fee),
            ),
        )

    def update_transfer(
        self,
        transfer_id: str,
        *,
        amount: Number | None = None,
        date: date_type | None = None,
        description: str | None = None,
        from_account_id: str | None = None,
        to_account_id: str | None = None,
        fee: Number | None = None,
    ) -> TransferResult:
        """
        Apply changes to an existing transfer.

        Description and date edits patch the existing legs. Amount, fee or
        account edits void the old legs and post new ones, since ledger
        amounts are never rewritten in place.
        """
        existing = self.get(transfer_id)
        if existing is None:
            return fail(TransferResult, "Transfer not found", NOT_FOUND)
        account_ids = [existing.from_account_id, existing.to_account_id, from_account_id, to_account_id]
        changes = {
            "amount": amount,
            "date": date,
            "description": description,
            "from_account_id": from_account_id,
            "to_account_id": to_account_id,
            "fee": fee,
        }
        return self._atomically(account_ids, lambda: self._update(transfer_id, changes))

    def delete_transfer(self, transfer_id: str) -> TransferResult:
        existing = self.get(transfer_id)
        if existing is None:
            return fail(TransferResult, "Transfer not found", NOT_FOUND)
        account_ids = [existing.from_account_id, existing.to_account_id]
        return self._atomically(account_ids, lambda: self._delete(transfer_id))

    def get(self, transfer_id: str) -> models.Transfer | None:
        return self.db.get(models.Transfer, transfer_id)

    def list_transfers(self, account_id: str | None = None) -> list[models.Transfer]:
        query = self.db.query(models.Transfer)
        if account_id is not None:
            query = query.filter(
                or_(
                    models.Transfer.from_account_id == account_id,
                    models.Transfer.to_account_id == account_id,
                )
            )
        return query.order_by(models.Transfer.date.desc(), models.Transfer.created_at.desc()).all()

    def _lookup(self, account_id: str, kind: AccountKind | str | None) -> LedgerAccount | None:
        if kind is None:
            return self.reconciler.find_account(account_id)
        if parse_account_kind(kind) == AccountKind.CREDIT:
            return self.db.get(models.CreditCard, account_id)
        return self.db.get(models.Account, account_id)

    def _check_funds(self, source: LedgerAccount, required: Decimal) -> ValidationResult:
        if isinstance(source, models.CreditCard):
            if to_money(source.available_credit) < required:
                return ValidationResult(valid=False, error="Exceeds available credit", error_code=EXCEEDS_CREDIT)
        elif to_money(source.balance) < required:
            return ValidationResult(valid=False, error="Insufficient funds", error_code=INSUFFICIENT_FUNDS)
        return ValidationResult(valid=True)

    def _check_request(self, from_account_id: str, to_account_id: str, amount: Decimal, fee: Decimal):
        if from_account_id == to_account_id:
            return fail(TransferResult, "Cannot transfer to the same account", SAME_ACCOUNT)
        if amount <= ZERO:
            return fail(TransferResult, "Amount must be positive", INVALID_AMOUNT)
        if fee < ZERO:
            return fail(TransferResult, "Fee cannot be negative", INVALID_AMOUNT)
        return None

    def _resolve_pair(self, from_account_id: str, to_account_id: str):
        source = self.reconciler.find_account(from_account_id)
        if source is None:
            return None, None, fail(TransferResult, "Source account not found", NOT_FOUND)
        destination = self.reconciler.find_account(to_account_id)
        if destination is None:
            return None, None, fail(TransferResult, "Destination account not found", NOT_FOUND)
        return source, destination, None

    def _create(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        transfer_date: date_type,
        description: str,
        fee: Decimal,
    ) -> TransferResult:
        rejected = self._check_request(from_account_id, to_account_id, amount, fee)
        if rejected is not None:
            return rejected
        source, destination, missing = self._resolve_pair(from_account_id, to_account_id)
        if missing is not None:
            return missing
        funds = self._check_funds(source, to_money(amount + fee))
        if not funds.valid:
            logger.info("transfer_rejected", from_account_id=from_account_id, reason=funds.error_code)
            return fail(TransferResult, funds.error, funds.error_code)

        debit, credit = self._append_legs(source, destination, amount, transfer_date, description)
        fee_txn = self._append_fee(source, destination, fee, transfer_date, description)
        settlement = self._settle_card(source, destination, transfer_date)

        now = models.utcnow()
        transfer = models.Transfer(
            id=models.new_id(),
            from_account_id=source.id,
            from_account_kind=account_kind_of(source).value,
            to_account_id=destination.id,
            to_account_kind=account_kind_of(destination).value,
            amount=amount,
            fee=fee if fee > ZERO else None,
            date=transfer_date,
            description=description,
            status=TransferStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        self.db.add(transfer)
        self._link(transfer, debit, credit, fee_txn, settlement)

        source_balance, destination_balance = self._reconcile_pair(transfer)
        for txn in (debit, fee_txn):
            if txn is not None:
                txn.balance = source_balance
        for txn in (credit, settlement):
            if txn is not None:
                txn.balance = destination_balance
        self.db.flush()

        logger.info(
            "transfer_created",
            transfer_id=transfer.id,
            from_account_id=transfer.from_account_id,
            to_account_id=transfer.to_account_id,
            amount=str(amount),
            fee=str(fee),
        )
        return TransferResult(success=True, transfer=transfer)

    def _update(self, transfer_id: str, changes: dict) -> TransferResult:
        transfer = self.get(transfer_id)
        if transfer is None:
            return fail(TransferResult, "Transfer not found", NOT_FOUND)

        old_fee = to_money(transfer.fee)
        new_amount = to_money(changes["amount"]) if changes["amount"] is not None else to_money(transfer.amount)
        new_fee = to_money(changes["fee"]) if changes["fee"] is not None else old_fee
        new_from = changes["from_account_id"] or transfer.from_account_id
        new_to = changes["to_account_id"] or transfer.to_account_id
        new_date = changes["date"] or transfer.date
        rejected = self._check_request(new_from, new_to, new_amount, new_fee)
        if rejected is not None:
            return rejected

        old_accounts = {transfer.from_account_id, transfer.to_account_id}
        restructured = (
            new_amount != to_money(transfer.amount)
            or new_fee != old_fee
            or new_from != transfer.from_account_id
            or new_to != transfer.to_account_id
        )
        if changes["description"] is not None:
            transfer.description = changes["description"]

        if restructured:
            self._void_legs(transfer)
            for account_id in old_accounts:
                if self.reconciler.find_account(account_id) is not None:
                    self.reconciler.recalculate(account_id)

            source, destination, missing = self._resolve_pair(new_from, new_to)
            if missing is not None:
                return missing
            funds = self._check_funds(source, to_money(new_amount + new_fee))
            if not funds.valid:
                return fail(TransferResult, funds.error, funds.error_code)

            debit, credit = self._append_legs(source, destination, new_amount, new_date, transfer.description)
            fee_txn = self._append_fee(source, destination, new_fee, new_date, transfer.description)
            settlement = self._settle_card(source, destination, new_date)
            transfer.from_account_id = source.id
            transfer.from_account_kind = account_kind_of(source).value
            transfer.to_account_id = destination.id
            transfer.to_account_kind = account_kind_of(destination).value
            transfer.amount = new_amount
            transfer.fee = new_fee if new_fee > ZERO else None
            transfer.date = new_date
            self._link(transfer, debit, credit, fee_txn, settlement)
        else:
            source, destination, missing = self._resolve_pair(transfer.from_account_id, transfer.to_account_id)
            if missing is not None:
                return missing
            debit_text, credit_text = self._leg_descriptions(source, destination, transfer.description)
            self.store.update(transfer.from_transaction_id, description=debit_text, date=new_date)
            self.store.update(transfer.to_transaction_id, description=credit_text, date=new_date)
            if transfer.fee_transaction_id:
                self.store.update(
                    transfer.fee_transaction_id,
                    description=self._fee_description(destination, transfer.description),
                    date=new_date,
                )
            if transfer.settlement_transaction_id:
                self.store.update(transfer.settlement_transaction_id, date=new_date)
            transfer.date = new_date

        transfer.updated_at = models.utcnow()
        self._reconcile_pair(transfer)
        for account_id in old_accounts | {transfer.from_account_id, transfer.to_account_id}:
            if self.reconciler.find_account(account_id) is not None:
                self.reconciler.refresh_snapshots(account_id)

        logger.info("transfer_updated", transfer_id=transfer.id, restructured=restructured)
        return TransferResult(success=True, transfer=transfer)

    def _delete(self, transfer_id: str) -> TransferResult:
        transfer = self.get(transfer_id)
        if transfer is None:
            return fail(TransferResult, "Transfer not found", NOT_FOUND)
        account_ids = [transfer.from_account_id, transfer.to_account_id]
        self._void_legs(transfer)
        self.db.delete(transfer)
        self.db.flush()
        for account_id in account_ids:
            # either side may already have been removed
            if self.reconciler.find_account(account_id) is None:
                continue
            self.reconciler.recalculate(account_id)
            self.reconciler.refresh_snapshots(account_id)
        logger.info("transfer_deleted", transfer_id=transfer_id)
        return TransferResult(success=True)

    def _leg_descriptions(self, source: LedgerAccount, destination: LedgerAccount, description: str) -> tuple[str, str]:
        if description:
            return description, description
        return f"Transfer to {destination.display_name}", f"Transfer from {source.display_name}"

    def _fee_description(self, destination: LedgerAccount, description: str) -> str:
        return f"Fee: {description or f'Transfer to {destination.display_name}'}"

    def _append_legs(
        self,
        source: LedgerAccount,
        destination: LedgerAccount,
        amount: Decimal,
        transfer_date: date_type,
        description: str,
    ) -> tuple[models.Transaction, models.Transaction]:
        debit_amount, credit_amount = transfer_leg_amounts(amount)
        debit_text, credit_text = self._leg_descriptions(source, destination, description)
        debit = self.store.append(
            account_id=source.id,
            account_kind=account_kind_of(source),
            amount=debit_amount,
            type=TransactionType.TRANSFER,
            date=transfer_date,
            description=debit_text,
            category=ACCOUNT_TRANSFER_CATEGORY,
        )
        credit = self.store.append(
            account_id=destination.id,
            account_kind=account_kind_of(destination),
            amount=credit_amount,
            type=TransactionType.TRANSFER,
            date=transfer_date,
            description=credit_text,
            category=ACCOUNT_TRANSFER_CATEGORY,
            related_transaction_id=debit.id,
        )
        self.store.update(debit.id, related_transaction_id=credit.id)
        return debit, credit

    def _append_fee(
        self,
        source: LedgerAccount,
        destination: LedgerAccount,
        fee: Decimal,
        transfer_date: date_type,
        description: str,
    ) -> models.Transaction | None:
        if fee <= ZERO:
            return None
        kind = account_kind_of(source)
        fee_type = expense_transaction_type(kind)
        return self.store.append(
            account_id=source.id,
            account_kind=kind,
            amount=signed_amount(fee, fee_type),
            type=fee_type,
            date=transfer_date,
            description=self._fee_description(destination, description),
            category=TRANSFER_FEE_CATEGORY,
        )

    def _settle_card(
        self,
        source: LedgerAccount,
        destination: LedgerAccount,
        transfer_date: date_type,
    ) -> models.Transaction | None:
        """Write off whatever a payment put a card past zero debt."""
        if not isinstance(destination, models.CreditCard):
            return None
        excess = self.reconciler.ledger_total(destination.id)
        if excess <= ZERO:
            return None
        settlement_type = TransactionType.ADJUSTMENT_DECREASE
        logger.info("card_overpayment_settled", card_id=destination.id, excess=str(excess))
        return self.store.append(
            account_id=destination.id,
            account_kind=AccountKind.CREDIT,
            amount=signed_amount(excess, settlement_type),
            type=settlement_type,
            date=transfer_date,
            description=f"Overpayment from {source.display_name}",
            category=CARD_SETTLEMENT_CATEGORY,
        )

    def _link(
        self,
        transfer: models.Transfer,
        debit: models.Transaction,
        credit: models.Transaction,
        fee_txn: models.Transaction | None,
        settlement: models.Transaction | None = None,
    ) -> None:
        transfer.from_transaction_id = debit.id
        transfer.to_transaction_id = credit.id
        transfer.fee_transaction_id = fee_txn.id if fee_txn is not None else None
        transfer.settlement_transaction_id = settlement.id if settlement is not None else None
        transfer.status = TransferStatus.COMPLETED.value
        self.db.flush()
        self.store.update(debit.id, transfer_id=transfer.id)
        self.store.update(credit.id, transfer_id=transfer.id)

    def _void_legs(self, transfer: models.Transfer) -> None:
        leg_ids = {txn.id for txn in self.store.by_transfer(transfer.id)}
        leg_ids.update(
            txn_id
            for txn_id in (
                transfer.from_transaction_id,
                transfer.to_transaction_id,
                transfer.fee_transaction_id,
                transfer.settlement_transaction_id,
            )
            if txn_id
        )
        for txn_id in leg_ids:
            txn = self.store.get(txn_id)
            if txn is not None and txn.deleted_at is None:
                self.store.soft_delete(txn_id)

    def _reconcile_pair(self, transfer: models.Transfer) -> tuple[Decimal, Decimal]:
        source_balance = self.reconciler.recalculate(transfer.from_account_id)
        destination_balance = self.reconciler.recalculate(transfer.to_account_id)
        return source_balance, destination_balance
