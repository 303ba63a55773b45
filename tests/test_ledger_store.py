from datetime import date
from decimal import Decimal

import pytest

from finledger.account_types import AccountKind, TransactionType
from finledger.errors import TransactionNotFoundError


def _append(store, account_id="acct-1", amount="10.00", when=date(2024, 3, 1), **kwargs):
    return store.append(
        account_id=account_id,
        account_kind=AccountKind.BANK,
        amount=amount,
        type=kwargs.pop("type", TransactionType.DEPOSIT),
        date=when,
        **kwargs,
    )


class TestLedgerStore:
    def test_append_assigns_id_and_timestamps(self, ledger):
        txn = _append(ledger.store, amount=12.345)
        assert txn.id
        assert txn.created_at is not None
        assert txn.updated_at is not None
        assert txn.amount == Decimal("12.35")
        assert txn.deleted_at is None

    def test_append_does_not_validate_account(self, ledger):
        txn = _append(ledger.store, account_id="does-not-exist")
        assert ledger.store.get(txn.id) is txn

    def test_by_account_excludes_soft_deleted(self, ledger):
        keep = _append(ledger.store, amount="5")
        drop = _append(ledger.store, amount="7")
        _append(ledger.store, account_id="other", amount="9")

        ledger.store.soft_delete(drop.id)

        ids = {txn.id for txn in ledger.store.by_account("acct-1")}
        assert ids == {keep.id}

    def test_soft_delete_keeps_the_row(self, ledger):
        txn = _append(ledger.store)
        ledger.store.soft_delete(txn.id)
        first_stamp = ledger.store.get(txn.id).deleted_at
        assert first_stamp is not None

        ledger.store.soft_delete(txn.id)
        assert ledger.store.get(txn.id).deleted_at == first_stamp

    def test_update_stamps_and_canonicalizes(self, ledger):
        txn = _append(ledger.store)
        before = txn.updated_at

        updated = ledger.store.update(txn.id, description="Paycheck", category="  transfer ")

        assert updated.description == "Paycheck"
        assert updated.category == "Account Transfer"
        assert updated.updated_at >= before

    def test_update_rejects_unknown_field(self, ledger):
        txn = _append(ledger.store)
        with pytest.raises(AttributeError):
            ledger.store.update(txn.id, colour="red")

    def test_unknown_transaction_raises(self, ledger):
        with pytest.raises(TransactionNotFoundError):
            ledger.store.update("missing", description="x")
        with pytest.raises(TransactionNotFoundError):
            ledger.store.soft_delete("missing")

    def test_links_are_queryable(self, ledger):
        txn = _append(ledger.store, transfer_id="t-1")
        _append(ledger.store, expense_id="e-1", type=TransactionType.WITHDRAWAL, amount="-3")
        assert [t.id for t in ledger.store.by_transfer("t-1")] == [txn.id]
        assert len(ledger.store.by_expense("e-1")) == 1
        assert ledger.store.by_income("nothing") == []

    def test_list_transactions_newest_first(self, ledger):
        old = _append(ledger.store, when=date(2024, 1, 1))
        new = _append(ledger.store, when=date(2024, 2, 1))
        gone = _append(ledger.store, when=date(2024, 3, 1))
        ledger.store.soft_delete(gone.id)

        assert [t.id for t in ledger.store.list_transactions("acct-1")] == [new.id, old.id]
        with_deleted = ledger.store.list_transactions("acct-1", include_deleted=True)
        assert [t.id for t in with_deleted] == [gone.id, new.id, old.id]
