from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from .account_types import (
    INFLOW_TRANSACTION_TYPES,
    OUTFLOW_TRANSACTION_TYPES,
    AccountKind,
    TransactionType,
)

Number = Union[int, float, str, Decimal]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Number | None) -> Decimal:
    """Quantize to cents. Floats go through ``str`` so 0.1 stays 0.10."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    amount = Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    # avoid storing "-0.00"
    return amount if amount != ZERO else ZERO


def signed_amount(magnitude: Number, transaction_type: TransactionType) -> Decimal:
    """
    Enforce sign conventions on the ledger:
    - deposits, payments, refunds and upward adjustments are inflows (positive)
    - withdrawals, charges and downward adjustments are outflows (negative)

    Transfer legs carry their sign explicitly, see ``transfer_leg_amounts``.
    """
    value = abs(to_money(magnitude))
    if transaction_type in INFLOW_TRANSACTION_TYPES:
        return value
    if transaction_type in OUTFLOW_TRANSACTION_TYPES:
        return to_money(-value)
    raise ValueError(f"Direction of a '{transaction_type.value}' transaction is ambiguous")


def transfer_leg_amounts(amount: Number) -> tuple[Decimal, Decimal]:
    """(debit on the source, credit on the destination); they always sum to zero."""
    value = abs(to_money(amount))
    return to_money(-value), value


def debt_from_ledger_total(raw_total: Number) -> Decimal:
    """Card spending is negative on the card's own ledger but increases its debt."""
    return to_money(-to_money(raw_total))


def available_credit(credit_limit: Number, current_balance: Number) -> Decimal:
    return to_money(to_money(credit_limit) - to_money(current_balance))


def expense_transaction_type(kind: AccountKind) -> TransactionType:
    return TransactionType.CHARGE if kind == AccountKind.CREDIT else TransactionType.WITHDRAWAL


def income_transaction_type(kind: AccountKind) -> TransactionType:
    return TransactionType.REFUND if kind == AccountKind.CREDIT else TransactionType.DEPOSIT


def adjustment_transaction_type(difference: Number) -> TransactionType:
    if to_money(difference) >= ZERO:
        return TransactionType.ADJUSTMENT_INCREASE
    return TransactionType.ADJUSTMENT_DECREASE
