import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, Numeric, String

from .database import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # naive UTC, the form SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default="bank")
    bank_name = Column(String, nullable=True)
    account_number = Column(String(4), nullable=True)
    account_type = Column(String, nullable=True)
    currency = Column(String, nullable=False, default="MXN")
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    last_update = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return f"{self.bank_name or 'Account'} ****{self.account_number or ''}"


class CreditCard(Base):
    __tablename__ = "credit_cards"

    id = Column(String(36), primary_key=True, default=new_id)
    bank = Column(String, nullable=False)
    card_name = Column(String, nullable=False)
    last_four_digits = Column(String(4), nullable=True)
    currency = Column(String, nullable=False, default="MXN")
    credit_limit = Column(Numeric(14, 2), nullable=False, default=0)
    current_balance = Column(Numeric(14, 2), nullable=False, default=0)
    available_credit = Column(Numeric(14, 2), nullable=False, default=0)
    cutoff_day = Column(Integer, nullable=True)
    payment_day = Column(Integer, nullable=True)
    interest_rate = Column(Float, nullable=True)
    last_update = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def display_name(self) -> str:
        return f"{self.bank} {self.card_name}"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=new_id)
    # Either an Account or a CreditCard id, so no foreign key. A dangling
    # id is an orphan the integrity checks clean up.
    account_id = Column(String(36), nullable=False, index=True)
    account_kind = Column(String, nullable=False, default="bank")
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    type = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    category = Column(String, nullable=True)
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    pending = Column(Boolean, nullable=False, default=False)
    related_transaction_id = Column(String(36), nullable=True)
    transfer_id = Column(String(36), nullable=True, index=True)
    expense_id = Column(String(36), nullable=True, index=True)
    income_id = Column(String(36), nullable=True, index=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class Transfer(Base):
    __tablename__ = "transfers"

    id = Column(String(36), primary_key=True, default=new_id)
    from_account_id = Column(String(36), nullable=False)
    from_account_kind = Column(String, nullable=False, default="bank")
    to_account_id = Column(String(36), nullable=False)
    to_account_kind = Column(String, nullable=False, default="bank")
    amount = Column(Numeric(14, 2), nullable=False)
    fee = Column(Numeric(14, 2), nullable=True)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default="pending")
    from_transaction_id = Column(String(36), nullable=True)
    to_transaction_id = Column(String(36), nullable=True)
    fee_transaction_id = Column(String(36), nullable=True)
    settlement_transaction_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class Investment(Base):
    __tablename__ = "investments"

    id = Column(String(36), primary_key=True, default=new_id)
    platform = Column(String, nullable=False)
    type = Column(String, nullable=False)
    initial_capital = Column(Numeric(14, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    gat_percentage = Column(Float, nullable=False, default=0.0)
    accumulated_returns = Column(Numeric(14, 2), nullable=False, default=0)
    current_value = Column(Numeric(14, 2), nullable=False, default=0)
    last_update = Column(DateTime, default=utcnow, nullable=False)
    auto_reinvest = Column(Boolean, nullable=False, default=False)
    # Provenance only; the account balance never depends on it
    source_account_id = Column(String(36), nullable=True)


class InvestmentContribution(Base):
    __tablename__ = "investment_contributions"

    id = Column(String(36), primary_key=True, default=new_id)
    investment_id = Column(String(36), ForeignKey("investments.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    source = Column(String, nullable=True)
    source_account_id = Column(String(36), nullable=True)
    transaction_id = Column(String(36), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class InvestmentWithdrawal(Base):
    __tablename__ = "investment_withdrawals"

    id = Column(String(36), primary_key=True, default=new_id)
    investment_id = Column(String(36), ForeignKey("investments.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    reason = Column(String, nullable=True)
    destination_account_id = Column(String(36), nullable=True)
    transaction_id = Column(String(36), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=new_id)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    category = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    account_id = Column(String(36), nullable=True)
    account_kind = Column(String, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class Income(Base):
    __tablename__ = "incomes"

    id = Column(String(36), primary_key=True, default=new_id)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    category = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    source = Column(String, nullable=True)
    account_id = Column(String(36), nullable=True)
    account_kind = Column(String, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
