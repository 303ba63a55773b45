from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from .. import models, schemas
from ..database import get_db
from ..ledger import Ledger, get_ledger, raise_for_failure
from ..services.balance_metrics import calculate_net_worth

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.post("", response_model=schemas.AccountRead, status_code=201)
def create_account(account: schemas.AccountCreate, ledger: Ledger = Depends(get_ledger)):
    payload = account.model_dump()
    result = ledger.activity.open_account(**payload)
    raise_for_failure(result)
    return result.record


@router.get("", response_model=list[schemas.AccountRead])
def list_accounts(db: Session = Depends(get_db)):
    return db.query(models.Account).order_by(models.Account.created_at).all()


@router.get("/summary", response_model=schemas.AccountsSummary)
def get_accounts_summary(db: Session = Depends(get_db)):
    return calculate_net_worth(db.query(models.Account).all(), db.query(models.CreditCard).all())


@router.get("/{account_id}", response_model=schemas.AccountRead)
def get_account(account_id: str, db: Session = Depends(get_db)):
    account = db.get(models.Account, account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


@router.delete("/{account_id}", status_code=204)
def delete_account(account_id: str, db: Session = Depends(get_db), ledger: Ledger = Depends(get_ledger)):
    if not db.get(models.Account, account_id):
        raise HTTPException(status_code=404, detail="Account not found")
    raise_for_failure(ledger.activity.delete_account(account_id))
    return None


@router.post("/{account_id}/adjust", response_model=schemas.TransactionRead | None)
def adjust_account_balance(
    account_id: str,
    adjustment: schemas.BalanceAdjustment,
    db: Session = Depends(get_db),
    ledger: Ledger = Depends(get_ledger),
):
    """
    Set the balance to what the bank statement says. The difference is
    booked as an adjustment transaction; nothing is returned when the
    ledger already agrees.
    """
    if not db.get(models.Account, account_id):
        raise HTTPException(status_code=404, detail="Account not found")
    result = ledger.activity.adjust_balance(
        account_id,
        adjustment.new_balance,
        note=adjustment.note,
        adjusted_on=adjustment.date,
    )
    raise_for_failure(result)
    return result.transaction


@router.post("/{account_id}/recalculate", response_model=schemas.BalanceRead)
def recalculate_account(account_id: str, db: Session = Depends(get_db), ledger: Ledger = Depends(get_ledger)):
    if not db.get(models.Account, account_id):
        raise HTTPException(status_code=404, detail="Account not found")
    balance = ledger.recalculate(account_id)
    return schemas.BalanceRead(account_id=account_id, balance=float(balance))
