from fastapi import APIRouter, Depends, HTTPException, Query
from .. import schemas
from ..errors import ImmutableFieldError, TransactionNotFoundError
from ..ledger import Ledger, get_ledger

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=list[schemas.TransactionRead])
def list_transactions(
    account_id: str | None = Query(default=None),
    include_deleted: bool = Query(default=False),
    ledger: Ledger = Depends(get_ledger),
):
    return ledger.store.list_transactions(account_id=account_id, include_deleted=include_deleted)


@router.get("/{transaction_id}", response_model=schemas.TransactionRead)
def get_transaction(transaction_id: str, ledger: Ledger = Depends(get_ledger)):
    txn = ledger.store.get(transaction_id)
    if not txn:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn


@router.patch("/{transaction_id}", response_model=schemas.TransactionRead)
def update_transaction(
    transaction_id: str,
    payload: schemas.TransactionUpdate,
    ledger: Ledger = Depends(get_ledger),
):
    """
    Only descriptive fields can change here. Amounts and accounts change
    through the operation that created the transaction (transfer, expense,
    income, contribution, adjustment).
    """
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes provided")
    try:
        return ledger.update_transaction(transaction_id, **changes)
    except TransactionNotFoundError:
        raise HTTPException(status_code=404, detail="Transaction not found")
    except ImmutableFieldError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
