from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from . import models

NOT_FOUND = "not_found"
INACTIVE = "inactive"
INSUFFICIENT_FUNDS = "insufficient_funds"
EXCEEDS_CREDIT = "exceeds_credit"
SAME_ACCOUNT = "same_account"
INVALID_AMOUNT = "invalid_amount"


@dataclass
class OperationResult:
    """Outcome of a business operation; failures carry a user-facing message."""

    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class TransferResult(OperationResult):
    transfer: Optional[models.Transfer] = None


@dataclass
class InvestmentResult(OperationResult):
    investment: Optional[models.Investment] = None
    transaction: Optional[models.Transaction] = None


@dataclass
class ContributionResult(OperationResult):
    contribution: Optional[models.InvestmentContribution] = None
    transaction: Optional[models.Transaction] = None


@dataclass
class WithdrawalResult(OperationResult):
    withdrawal: Optional[models.InvestmentWithdrawal] = None
    transaction: Optional[models.Transaction] = None


@dataclass
class BulkLinkResult(OperationResult):
    success_count: int = 0
    fail_count: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class PostingResult(OperationResult):
    """Result of an adjustment, opening balance or expense/income posting."""

    transaction: Optional[models.Transaction] = None
    record: Optional[object] = None


def fail(result_type: type, error: str, error_code: str):
    return result_type(success=False, error=error, error_code=error_code)
