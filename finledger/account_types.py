from enum import Enum


class AccountKind(str, Enum):
    """Which table an account id lives in."""

    BANK = "bank"
    CREDIT = "credit"


class AccountType(str, Enum):
    BANK = "bank"
    CASH = "cash"


class BankAccountSubtype(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    PAYMENT = "payment"
    CHARGE = "charge"
    REFUND = "refund"
    ADJUSTMENT_INCREASE = "adjustment_increase"
    ADJUSTMENT_DECREASE = "adjustment_decrease"


class TransferStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


INFLOW_TRANSACTION_TYPES = {
    TransactionType.DEPOSIT,
    TransactionType.PAYMENT,
    TransactionType.REFUND,
    TransactionType.ADJUSTMENT_INCREASE,
}

OUTFLOW_TRANSACTION_TYPES = {
    TransactionType.WITHDRAWAL,
    TransactionType.CHARGE,
    TransactionType.ADJUSTMENT_DECREASE,
}


def parse_account_kind(value: str | None) -> AccountKind:
    normalized = (value or "").lower()
    if normalized in ("credit", "credit_card", "card"):
        return AccountKind.CREDIT
    return AccountKind.BANK
