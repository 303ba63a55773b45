"""
Exceptions for programmer errors.

Business-rule outcomes (insufficient funds, inactive account, ...) are not
exceptions; services report them through result objects.
"""


class LedgerError(Exception):
    pass


class AccountNotFoundError(LedgerError):
    def __init__(self, account_id: str):
        super().__init__(f"No account or credit card with id {account_id!r}")
        self.account_id = account_id


class TransactionNotFoundError(LedgerError):
    def __init__(self, transaction_id: str):
        super().__init__(f"No transaction with id {transaction_id!r}")
        self.transaction_id = transaction_id


class ImmutableFieldError(LedgerError):
    """Raised when an edit tries to change a field the balance chain depends on."""

    def __init__(self, fields: set[str]):
        names = ", ".join(sorted(fields))
        super().__init__(f"Transaction fields cannot be edited: {names}")
        self.fields = fields
