from datetime import date
from decimal import Decimal

import pytest

from finledger.account_types import AccountKind, TransactionType
from finledger.errors import AccountNotFoundError


def _post(ledger, record, amount, when=date(2024, 2, 1), kind=AccountKind.BANK, type=TransactionType.DEPOSIT):
    return ledger.store.append(
        account_id=record.id,
        account_kind=kind,
        amount=amount,
        type=type,
        date=when,
    )


class TestRecalculate:
    def test_balance_equals_sum_of_live_transactions(self, ledger, open_account):
        account = open_account(balance=100)
        _post(ledger, account, "250.50")
        _post(ledger, account, "-20.25", type=TransactionType.WITHDRAWAL)
        dropped = _post(ledger, account, "999")
        ledger.store.soft_delete(dropped.id)

        balance = ledger.reconciler.recalculate(account.id)

        assert balance == Decimal("330.25")
        assert account.balance == Decimal("330.25")
        assert ledger.reconciler.ledger_total(account.id) == Decimal("330.25")

    def test_recalculate_is_idempotent(self, ledger, open_account):
        account = open_account(balance=100)
        _post(ledger, account, "-40", type=TransactionType.WITHDRAWAL)
        first = ledger.reconciler.recalculate(account.id)
        second = ledger.reconciler.recalculate(account.id)
        assert first == second == Decimal("60.00")

    def test_stamps_last_update(self, ledger, open_account):
        account = open_account(balance=10)
        before = account.last_update
        ledger.reconciler.recalculate(account.id)
        assert account.last_update >= before

    def test_card_debt_is_negated_total(self, ledger, open_card):
        card = open_card(credit_limit=5000)
        _post(ledger, card, "-100", kind=AccountKind.CREDIT, type=TransactionType.CHARGE)
        _post(ledger, card, "-50", kind=AccountKind.CREDIT, type=TransactionType.CHARGE)

        debt = ledger.reconciler.recalculate(card.id)

        assert debt == Decimal("150.00")
        assert card.current_balance == Decimal("150.00")
        assert card.available_credit == Decimal("4850.00")

    def test_card_debt_is_not_floored(self, ledger, open_card):
        card = open_card(credit_limit=1000)
        _post(ledger, card, "30", kind=AccountKind.CREDIT, type=TransactionType.REFUND)
        assert ledger.reconciler.recalculate(card.id) == Decimal("-30.00")
        assert card.available_credit == Decimal("1030.00")

    def test_unknown_account_raises(self, ledger):
        with pytest.raises(AccountNotFoundError):
            ledger.reconciler.recalculate("nope")


class TestCheck:
    def test_detects_drift(self, ledger, open_account):
        account = open_account(balance=500)
        account.balance = Decimal("480.00")

        check = ledger.reconciler.check(account.id)

        assert not check.is_valid
        assert check.cached == Decimal("480.00")
        assert check.actual == Decimal("500.00")
        assert check.difference == Decimal("20.00")

    def test_within_tolerance_is_valid(self, ledger, open_account):
        account = open_account(balance=500)
        account.balance = Decimal("500.00")
        assert ledger.reconciler.check(account.id).is_valid

    def test_card_cached_at_zero_with_negative_ledger_debt_is_drift(self, ledger, open_card):
        card = open_card(credit_limit=1000)
        _post(ledger, card, "30", kind=AccountKind.CREDIT, type=TransactionType.REFUND)
        card.current_balance = Decimal("0.00")

        check = ledger.reconciler.check(card.id)

        assert not check.is_valid
        assert check.actual == Decimal("-30.00")


class TestSnapshots:
    def test_running_balances_follow_date_order(self, ledger, open_account):
        account = open_account(balance=0)
        late = _post(ledger, account, "-25", when=date(2024, 3, 1), type=TransactionType.WITHDRAWAL)
        early = _post(ledger, account, "100", when=date(2024, 2, 1))

        ledger.reconciler.refresh_snapshots(account.id)

        assert early.balance == Decimal("100.00")
        assert late.balance == Decimal("75.00")

    def test_card_snapshots_show_debt(self, ledger, open_card):
        card = open_card()
        charge = _post(ledger, card, "-80", kind=AccountKind.CREDIT, type=TransactionType.CHARGE)
        ledger.reconciler.refresh_snapshots(card.id)
        assert charge.balance == Decimal("80.00")
