from __future__ import annotations

from typing import Iterable

from .. import models, schemas
from ..transaction_logic import ZERO, to_money


def calculate_net_worth(
    accounts: Iterable[models.Account],
    cards: Iterable[models.CreditCard],
) -> schemas.AccountsSummary:
    """Net worth from the denormalized balances: active cash minus card debt."""
    cash = ZERO
    debt = ZERO
    account_count = 0
    card_count = 0
    for account in accounts:
        account_count += 1
        if account.is_active:
            cash += to_money(account.balance)
    for card in cards:
        card_count += 1
        debt += to_money(card.current_balance)
    return schemas.AccountsSummary(
        cash=float(cash),
        debt=float(debt),
        net_worth=float(to_money(cash - debt)),
        accounts=account_count,
        credit_cards=card_count,
    )
