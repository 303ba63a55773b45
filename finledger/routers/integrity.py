from fastapi import APIRouter, Depends
from .. import schemas
from ..ledger import Ledger, get_ledger

router = APIRouter(prefix="/integrity", tags=["integrity"])


@router.get("/report", response_model=schemas.ValidationReportRead)
def get_validation_report(ledger: Ledger = Depends(get_ledger)):
    return ledger.integrity.run_validations()


@router.post("/auto-fix", response_model=schemas.FixReportRead)
def auto_fix_balances(ledger: Ledger = Depends(get_ledger)):
    return ledger.integrity.auto_fix_balance_discrepancies()


@router.post("/cleanup-orphans", response_model=schemas.CleanupResult)
def cleanup_orphans(ledger: Ledger = Depends(get_ledger)):
    return schemas.CleanupResult(orphans_cleaned=ledger.integrity.cleanup_orphaned_transactions())


@router.post("/reconcile-all", response_model=schemas.ReconcileSummaryRead)
def reconcile_all(ledger: Ledger = Depends(get_ledger)):
    return ledger.integrity.reconcile_all_accounts()


@router.post("/repair", response_model=schemas.ManualReconciliationRead)
def repair(ledger: Ledger = Depends(get_ledger)):
    """Cleanup, auto-fix and a full reconcile, with validation reports before and after."""
    return ledger.integrity.run_manual_reconciliation()
