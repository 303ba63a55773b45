from datetime import date as date_type, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from .account_types import AccountType, BankAccountSubtype, TransactionType, TransferStatus


class AccountBase(BaseModel):
    name: str
    type: AccountType = AccountType.BANK
    bank_name: Optional[str] = None
    account_number: Optional[str] = Field(default=None, max_length=4)
    account_type: Optional[BankAccountSubtype] = None
    currency: str = "MXN"
    is_active: bool = True


class AccountCreate(AccountBase):
    opening_balance: float = 0.0
    opened_on: Optional[date_type] = None


class AccountRead(AccountBase):
    id: str
    balance: float
    last_update: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreditCardBase(BaseModel):
    bank: str
    card_name: str
    last_four_digits: Optional[str] = Field(default=None, max_length=4)
    credit_limit: float = Field(ge=0)
    cutoff_day: Optional[int] = Field(default=None, ge=1, le=31)
    payment_day: Optional[int] = Field(default=None, ge=1, le=31)
    interest_rate: Optional[float] = None
    currency: str = "MXN"


class CreditCardCreate(CreditCardBase):
    current_balance: float = 0.0
    opened_on: Optional[date_type] = None


class CreditCardRead(CreditCardBase):
    id: str
    current_balance: float
    available_credit: float
    last_update: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BalanceAdjustment(BaseModel):
    new_balance: float
    note: Optional[str] = None
    date: Optional[date_type] = None


class BalanceRead(BaseModel):
    account_id: str
    balance: float


class AccountsSummary(BaseModel):
    cash: float
    debt: float
    net_worth: float
    accounts: int
    credit_cards: int


class TransactionRead(BaseModel):
    id: str
    account_id: str
    account_kind: str
    date: date_type
    amount: float
    type: TransactionType
    description: str
    category: Optional[str] = None
    balance: float
    pending: bool
    related_transaction_id: Optional[str] = None
    transfer_id: Optional[str] = None
    expense_id: Optional[str] = None
    income_id: Optional[str] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionUpdate(BaseModel):
    description: Optional[str] = None
    category: Optional[str] = None
    date: Optional[date_type] = None
    pending: Optional[bool] = None


class TransferValidate(BaseModel):
    from_account_id: str
    from_account_kind: Optional[str] = None
    amount: float


class TransferValidation(BaseModel):
    valid: bool
    error: Optional[str] = None


class TransferCreate(BaseModel):
    from_account_id: str
    to_account_id: str
    amount: float
    date: Optional[date_type] = None
    description: str = ""
    fee: Optional[float] = None


class TransferUpdate(BaseModel):
    from_account_id: Optional[str] = None
    to_account_id: Optional[str] = None
    amount: Optional[float] = None
    date: Optional[date_type] = None
    description: Optional[str] = None
    fee: Optional[float] = None


class TransferRead(BaseModel):
    id: str
    from_account_id: str
    from_account_kind: str
    to_account_id: str
    to_account_kind: str
    amount: float
    fee: Optional[float] = None
    date: date_type
    description: str
    status: TransferStatus
    from_transaction_id: Optional[str] = None
    to_transaction_id: Optional[str] = None
    fee_transaction_id: Optional[str] = None
    settlement_transaction_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvestmentCreate(BaseModel):
    platform: str
    type: str
    initial_capital: float
    start_date: Optional[date_type] = None
    gat_percentage: float = 0.0
    auto_reinvest: bool = False
    source_account_id: Optional[str] = None


class InvestmentRead(BaseModel):
    id: str
    platform: str
    type: str
    initial_capital: float
    start_date: date_type
    gat_percentage: float
    accumulated_returns: float
    current_value: float
    last_update: datetime
    auto_reinvest: bool
    source_account_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class InvestmentTotal(BaseModel):
    investment_id: str
    total_invested: float


class InvestmentLink(BaseModel):
    source_account_id: str


class InvestmentLinkItem(InvestmentLink):
    investment_id: str


class BulkLinkRequest(BaseModel):
    links: list[InvestmentLinkItem]


class BulkLinkRead(BaseModel):
    success: bool
    success_count: int
    fail_count: int
    errors: list[str]

    model_config = ConfigDict(from_attributes=True)


class MigrationStatusRead(BaseModel):
    total: int
    linked: int
    unlinked: int
    needs_migration: bool

    model_config = ConfigDict(from_attributes=True)


class ContributionCreate(BaseModel):
    amount: float
    source_account_id: Optional[str] = None
    source: Optional[str] = None
    date: Optional[date_type] = None


class ContributionRead(BaseModel):
    id: str
    investment_id: str
    date: date_type
    amount: float
    source: Optional[str] = None
    source_account_id: Optional[str] = None
    transaction_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WithdrawalCreate(BaseModel):
    amount: float
    destination_account_id: Optional[str] = None
    reason: Optional[str] = None
    date: Optional[date_type] = None


class WithdrawalRead(BaseModel):
    id: str
    investment_id: str
    date: date_type
    amount: float
    reason: Optional[str] = None
    destination_account_id: Optional[str] = None
    transaction_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExpenseCreate(BaseModel):
    amount: float
    category: str
    date: Optional[date_type] = None
    description: str = ""
    account_id: Optional[str] = None


class ExpenseRead(BaseModel):
    id: str
    date: date_type
    amount: float
    category: str
    description: str
    account_id: Optional[str] = None
    account_kind: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class IncomeCreate(ExpenseCreate):
    source: Optional[str] = None


class IncomeRead(ExpenseRead):
    source: Optional[str] = None


class ValidationIssueRead(BaseModel):
    severity: str
    type: str
    action: str
    count: Optional[int] = None
    account_id: Optional[str] = None
    account_name: Optional[str] = None
    cached: Optional[float] = None
    actual: Optional[float] = None
    difference: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class ValidationReportRead(BaseModel):
    timestamp: datetime
    issues_found: int
    issues: list[ValidationIssueRead]
    auto_fix_available: bool

    model_config = ConfigDict(from_attributes=True)


class FixReportRead(BaseModel):
    timestamp: datetime
    accounts_checked: int
    accounts_fixed: int
    accounts_failed: int
    fixed_ids: list[str] = []
    failed_ids: list[str] = []

    model_config = ConfigDict(from_attributes=True)


class ReconcileErrorRead(BaseModel):
    account_id: str
    error: str

    model_config = ConfigDict(from_attributes=True)


class ReconcileSummaryRead(BaseModel):
    start_time: datetime
    end_time: datetime
    duration_ms: int
    accounts_processed: int
    balances_fixed: int
    errors: list[ReconcileErrorRead] = []

    model_config = ConfigDict(from_attributes=True)


class CleanupResult(BaseModel):
    orphans_cleaned: int


class ManualReconciliationRead(BaseModel):
    before: ValidationReportRead
    orphans_cleaned: int
    fix: FixReportRead
    reconcile: ReconcileSummaryRead
    after: ValidationReportRead

    model_config = ConfigDict(from_attributes=True)
