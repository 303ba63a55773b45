import threading
from datetime import date
from decimal import Decimal

from finledger import models
from finledger.ledger import Ledger
from finledger.locks import AccountLocks
from finledger.results import EXCEEDS_CREDIT, INSUFFICIENT_FUNDS, INVALID_AMOUNT, NOT_FOUND, SAME_ACCOUNT

TRANSFER_DAY = date(2024, 5, 10)


def _live_count(db):
    return db.query(models.Transaction).filter(models.Transaction.deleted_at.is_(None)).count()


class TestCreateTransfer:
    def test_moves_money_between_accounts(self, ledger, db, open_account):
        a = open_account("A", balance=5000)
        b = open_account("B", balance=1000)

        result = ledger.transfers.create_transfer(a.id, b.id, 500, date=TRANSFER_DAY)

        assert result.success, result.error
        assert db.get(models.Account, a.id).balance == Decimal("4500.00")
        assert db.get(models.Account, b.id).balance == Decimal("1500.00")

        transfer = result.transfer
        assert transfer.status == "completed"
        debit = ledger.store.get(transfer.from_transaction_id)
        credit = ledger.store.get(transfer.to_transaction_id)
        assert debit.amount + credit.amount == Decimal("0")
        assert debit.amount == Decimal("-500.00")
        assert debit.related_transaction_id == credit.id
        assert credit.related_transaction_id == debit.id
        assert debit.transfer_id == credit.transfer_id == transfer.id
        assert debit.date == credit.date == TRANSFER_DAY
        assert debit.type == credit.type == "transfer"
        assert debit.category == "Account Transfer"
        assert debit.description == "Transfer to B"
        assert credit.description == "Transfer from A"
        assert debit.balance == Decimal("4500.00")
        assert credit.balance == Decimal("1500.00")

    def test_insufficient_funds_writes_nothing(self, ledger, db, open_account):
        a = open_account("A", balance=100)
        b = open_account("B", balance=0)
        before = _live_count(db)

        result = ledger.transfers.create_transfer(a.id, b.id, 500)

        assert not result.success
        assert result.error == "Insufficient funds"
        assert result.error_code == INSUFFICIENT_FUNDS
        assert _live_count(db) == before
        assert db.query(models.Transfer).count() == 0
        assert db.get(models.Account, a.id).balance == Decimal("100.00")
        assert db.get(models.Account, b.id).balance == Decimal("0.00")

    def test_card_paydown_reduces_debt(self, ledger, db, open_account, open_card):
        bank = open_account("Nomina", balance=2000)
        card = open_card(credit_limit=10000, debt=800)

        result = ledger.transfers.create_transfer(bank.id, card.id, 300)

        assert result.success, result.error
        card = db.get(models.CreditCard, card.id)
        assert db.get(models.Account, bank.id).balance == Decimal("1700.00")
        assert card.current_balance == Decimal("500.00")
        assert card.available_credit == Decimal("9500.00")
        assert result.transfer.to_account_kind == "credit"

    def test_overpaying_card_settles_at_zero(self, ledger, db, open_account, open_card):
        bank = open_account("Nomina", balance=2000)
        card = open_card(credit_limit=1000, debt=100)

        result = ledger.transfers.create_transfer(bank.id, card.id, 300)

        assert result.success, result.error
        card = db.get(models.CreditCard, card.id)
        assert card.current_balance == Decimal("0.00")
        assert card.available_credit == Decimal("1000.00")
        assert ledger.reconciler.check(card.id).is_valid

        transfer = result.transfer
        settlement = ledger.store.get(transfer.settlement_transaction_id)
        assert settlement.amount == Decimal("-200.00")
        assert settlement.category == "Card Settlement"
        assert settlement.transfer_id is None
        assert len(ledger.store.by_transfer(transfer.id)) == 2
        assert ledger.reconciler.ledger_total(card.id) == Decimal("0.00")

    def test_settled_card_charges_from_zero(self, ledger, db, open_account, open_card):
        bank = open_account("Nomina", balance=2000)
        card = open_card(credit_limit=1000, debt=1000)
        assert ledger.transfers.create_transfer(bank.id, card.id, 1500).success

        result = ledger.activity.post_expense(amount=200, category="Food", account_id=card.id)

        assert result.success, result.error
        card = db.get(models.CreditCard, card.id)
        assert card.current_balance == Decimal("200.00")
        assert card.available_credit == Decimal("800.00")
        assert ledger.reconciler.check(card.id).is_valid
        assert ledger.transfers.create_transfer(card.id, bank.id, 900).error_code == EXCEEDS_CREDIT

    def test_card_source_limited_by_available_credit(self, ledger, open_account, open_card):
        card = open_card(credit_limit=1000, debt=900)
        bank = open_account("Cash", balance=0)

        result = ledger.transfers.create_transfer(card.id, bank.id, 200)

        assert not result.success
        assert result.error == "Exceeds available credit"
        assert result.error_code == EXCEEDS_CREDIT

    def test_cash_advance_from_card(self, ledger, db, open_account, open_card):
        card = open_card(credit_limit=1000)
        bank = open_account("Cash", balance=0)

        result = ledger.transfers.create_transfer(card.id, bank.id, 200)

        assert result.success, result.error
        assert db.get(models.CreditCard, card.id).current_balance == Decimal("200.00")
        assert db.get(models.Account, bank.id).balance == Decimal("200.00")

    def test_rejects_bad_requests(self, ledger, open_account):
        a = open_account("A", balance=100)
        b = open_account("B")

        same = ledger.transfers.create_transfer(a.id, a.id, 10)
        assert same.error_code == SAME_ACCOUNT

        zero = ledger.transfers.create_transfer(a.id, b.id, 0)
        assert zero.error_code == INVALID_AMOUNT

        negative_fee = ledger.transfers.create_transfer(a.id, b.id, 10, fee=-1)
        assert negative_fee.error_code == INVALID_AMOUNT

        missing = ledger.transfers.create_transfer(a.id, "nowhere", 10)
        assert missing.error_code == NOT_FOUND
        assert missing.error == "Destination account not found"

        missing_source = ledger.transfers.create_transfer("nowhere", b.id, 10)
        assert missing_source.error == "Source account not found"

    def test_fee_is_a_separate_debit(self, ledger, db, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B", balance=0)

        result = ledger.transfers.create_transfer(a.id, b.id, 100, fee=5)

        assert result.success, result.error
        transfer = result.transfer
        assert db.get(models.Account, a.id).balance == Decimal("895.00")
        assert db.get(models.Account, b.id).balance == Decimal("100.00")
        fee_txn = ledger.store.get(transfer.fee_transaction_id)
        assert fee_txn.amount == Decimal("-5.00")
        assert fee_txn.type == "withdrawal"
        assert fee_txn.category == "Transfer Fee"
        assert fee_txn.transfer_id is None
        assert len(ledger.store.by_transfer(transfer.id)) == 2

    def test_fee_counts_toward_required_funds(self, ledger, open_account):
        a = open_account("A", balance=100)
        b = open_account("B")
        result = ledger.transfers.create_transfer(a.id, b.id, 100, fee=1)
        assert result.error_code == INSUFFICIENT_FUNDS

    def test_chained_transfers(self, ledger, db, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B", balance=0)
        c = open_account("C", balance=0)

        assert ledger.transfers.create_transfer(a.id, b.id, 600).success
        assert ledger.transfers.create_transfer(b.id, c.id, 250).success

        assert db.get(models.Account, a.id).balance == Decimal("400.00")
        assert db.get(models.Account, b.id).balance == Decimal("350.00")
        assert db.get(models.Account, c.id).balance == Decimal("250.00")
        for account in (a, b, c):
            assert ledger.reconciler.check(account.id).is_valid


class TestValidate:
    def test_validate_bank_and_card(self, ledger, open_account, open_card):
        bank = open_account("A", balance=100)
        card = open_card(credit_limit=500, debt=450)

        assert ledger.transfers.validate(bank.id, "bank", 100).valid
        assert ledger.transfers.validate(bank.id, "bank", 100.01).error == "Insufficient funds"
        assert ledger.transfers.validate(card.id, "credit", 60).error == "Exceeds available credit"
        assert ledger.transfers.validate(card.id, "credit", 50).valid

    def test_validate_unknown_source(self, ledger, open_account):
        bank = open_account("A", balance=100)
        result = ledger.transfers.validate(bank.id, "credit", 10)
        assert not result.valid
        assert result.error == "Source account not found"


class TestUpdateTransfer:
    def test_description_only(self, ledger, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B")
        transfer = ledger.transfers.create_transfer(a.id, b.id, 100).transfer

        result = ledger.transfers.update_transfer(transfer.id, description="Rent share")

        assert result.success, result.error
        assert result.transfer.description == "Rent share"
        assert ledger.store.get(transfer.from_transaction_id).description == "Rent share"
        assert ledger.store.get(transfer.to_transaction_id).description == "Rent share"

    def test_date_change_keeps_legs_together(self, ledger, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B")
        transfer = ledger.transfers.create_transfer(a.id, b.id, 100, date=TRANSFER_DAY).transfer
        leg_ids = (transfer.from_transaction_id, transfer.to_transaction_id)

        result = ledger.transfers.update_transfer(transfer.id, date=date(2024, 6, 1))

        assert result.success, result.error
        assert (result.transfer.from_transaction_id, result.transfer.to_transaction_id) == leg_ids
        assert {ledger.store.get(leg).date for leg in leg_ids} == {date(2024, 6, 1)}

    def test_amount_change_reposts_legs(self, ledger, db, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B")
        transfer = ledger.transfers.create_transfer(a.id, b.id, 100).transfer
        old_debit = transfer.from_transaction_id

        result = ledger.transfers.update_transfer(transfer.id, amount=250)

        assert result.success, result.error
        assert db.get(models.Account, a.id).balance == Decimal("750.00")
        assert db.get(models.Account, b.id).balance == Decimal("250.00")
        assert ledger.store.get(old_debit).deleted_at is not None
        assert result.transfer.from_transaction_id != old_debit
        assert len(ledger.store.by_transfer(transfer.id)) == 2

    def test_revalidates_without_old_legs(self, ledger, db, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B")
        transfer = ledger.transfers.create_transfer(a.id, b.id, 800).transfer

        # 1000 is available once the first 800 is put back
        assert ledger.transfers.update_transfer(transfer.id, amount=1000).success
        assert db.get(models.Account, a.id).balance == Decimal("0.00")

    def test_failed_update_rolls_back(self, ledger, db, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B")
        transfer = ledger.transfers.create_transfer(a.id, b.id, 100).transfer
        debit_id = transfer.from_transaction_id

        result = ledger.transfers.update_transfer(transfer.id, amount=5000)

        assert result.error_code == INSUFFICIENT_FUNDS
        assert ledger.store.get(debit_id).deleted_at is None
        assert db.get(models.Account, a.id).balance == Decimal("900.00")
        assert db.get(models.Transfer, transfer.id).amount == Decimal("100.00")

    def test_change_destination(self, ledger, db, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B")
        c = open_account("C")
        transfer = ledger.transfers.create_transfer(a.id, b.id, 100).transfer

        result = ledger.transfers.update_transfer(transfer.id, to_account_id=c.id)

        assert result.success, result.error
        assert db.get(models.Account, b.id).balance == Decimal("0.00")
        assert db.get(models.Account, c.id).balance == Decimal("100.00")
        assert db.get(models.Account, a.id).balance == Decimal("900.00")

    def test_shrinking_card_overpayment_drops_settlement(self, ledger, db, open_account, open_card):
        bank = open_account("Nomina", balance=2000)
        card = open_card(credit_limit=1000, debt=100)
        transfer = ledger.transfers.create_transfer(bank.id, card.id, 300).transfer
        old_settlement = transfer.settlement_transaction_id

        result = ledger.transfers.update_transfer(transfer.id, amount=50)

        assert result.success, result.error
        assert result.transfer.settlement_transaction_id is None
        assert ledger.store.get(old_settlement).deleted_at is not None
        assert db.get(models.CreditCard, card.id).current_balance == Decimal("50.00")
        assert db.get(models.Account, bank.id).balance == Decimal("1950.00")

    def test_unknown_transfer(self, ledger):
        assert ledger.transfers.update_transfer("missing", amount=1).error_code == NOT_FOUND


class TestDeleteTransfer:
    def test_delete_restores_both_balances(self, ledger, db, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B", balance=0)
        transfer = ledger.transfers.create_transfer(a.id, b.id, 100, fee=5).transfer
        transfer_id = transfer.id
        leg_ids = [transfer.from_transaction_id, transfer.to_transaction_id, transfer.fee_transaction_id]

        result = ledger.transfers.delete_transfer(transfer_id)

        assert result.success
        assert db.get(models.Transfer, transfer_id) is None
        assert db.get(models.Account, a.id).balance == Decimal("1000.00")
        assert db.get(models.Account, b.id).balance == Decimal("0.00")
        for leg_id in leg_ids:
            assert ledger.store.get(leg_id).deleted_at is not None

    def test_delete_overpayment_restores_card_debt(self, ledger, db, open_account, open_card):
        bank = open_account("Nomina", balance=2000)
        card = open_card(credit_limit=1000, debt=100)
        transfer = ledger.transfers.create_transfer(bank.id, card.id, 300).transfer
        settlement_id = transfer.settlement_transaction_id

        assert ledger.transfers.delete_transfer(transfer.id).success

        assert db.get(models.CreditCard, card.id).current_balance == Decimal("100.00")
        assert db.get(models.Account, bank.id).balance == Decimal("2000.00")
        assert ledger.store.get(settlement_id).deleted_at is not None

    def test_delete_unknown(self, ledger):
        assert ledger.transfers.delete_transfer("missing").error_code == NOT_FOUND

    def test_list_by_account(self, ledger, open_account):
        a = open_account("A", balance=1000)
        b = open_account("B")
        c = open_account("C")
        ledger.transfers.create_transfer(a.id, b.id, 10)
        ledger.transfers.create_transfer(b.id, c.id, 5)

        assert len(ledger.transfers.list_transfers()) == 2
        assert len(ledger.transfers.list_transfers(account_id=c.id)) == 1
        assert len(ledger.transfers.list_transfers(account_id=b.id)) == 2


class TestConcurrentTransfers:
    def test_shared_source_is_never_overdrawn(self, session_factory, open_account):
        source_id = open_account("A", balance=1000).id
        targets = [open_account("B").id, open_account("C").id]
        locks = AccountLocks()
        barrier = threading.Barrier(len(targets))
        outcomes = []

        def send(target_id):
            session = session_factory()
            try:
                ledger = Ledger(session, locks)
                barrier.wait()
                result = ledger.transfers.create_transfer(source_id, target_id, 800)
                outcomes.append(result.error_code)
            finally:
                session.close()

        workers = [threading.Thread(target=send, args=(target_id,)) for target_id in targets]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=10)

        assert sorted(outcomes, key=str) == sorted([None, INSUFFICIENT_FUNDS], key=str)
        session = session_factory()
        try:
            assert session.get(models.Account, source_id).balance == Decimal("200.00")
            assert session.query(models.Transfer).count() == 1
        finally:
            session.close()
