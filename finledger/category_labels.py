from __future__ import annotations

"""
Category labels the ledger stamps on the transactions it creates itself.
"""

ACCOUNT_TRANSFER_CATEGORY = "Account Transfer"
TRANSFER_FEE_CATEGORY = "Transfer Fee"
BALANCE_ADJUSTMENT_CATEGORY = "Balance Adjustment"
OPENING_BALANCE_CATEGORY = "Opening Balance"
INVESTMENT_CATEGORY = "Investment"
CARD_SETTLEMENT_CATEGORY = "Card Settlement"

_CANONICAL = {
    label.lower(): label
    for label in (
        ACCOUNT_TRANSFER_CATEGORY,
        TRANSFER_FEE_CATEGORY,
        BALANCE_ADJUSTMENT_CATEGORY,
        OPENING_BALANCE_CATEGORY,
        INVESTMENT_CATEGORY,
        CARD_SETTLEMENT_CATEGORY,
    )
}
_TRANSFER_CATEGORY_ALIASES = {
    ACCOUNT_TRANSFER_CATEGORY.lower(),
    "transfer",
    "credit payment",
}
_INVESTMENT_NORMALIZED = INVESTMENT_CATEGORY.lower()


def canonicalize_category(category: str | None) -> str | None:
    """
    Normalize category labels so ledger-owned categories are stored consistently.
    """
    if category is None:
        return None
    trimmed = category.strip()
    if not trimmed:
        return None
    normalized = trimmed.lower()
    if normalized in _TRANSFER_CATEGORY_ALIASES:
        return ACCOUNT_TRANSFER_CATEGORY
    if normalized.startswith(_INVESTMENT_NORMALIZED):
        return INVESTMENT_CATEGORY
    return _CANONICAL.get(normalized, trimmed)

