from fastapi import APIRouter, Depends, HTTPException, Query
from .. import schemas
from ..ledger import Ledger, get_ledger, raise_for_failure

router = APIRouter(prefix="/transfers", tags=["transfers"])


@router.post("/validate", response_model=schemas.TransferValidation)
def validate_transfer(payload: schemas.TransferValidate, ledger: Ledger = Depends(get_ledger)):
    result = ledger.transfers.validate(payload.from_account_id, payload.from_account_kind, payload.amount)
    return schemas.TransferValidation(valid=result.valid, error=result.error)


@router.post("", response_model=schemas.TransferRead, status_code=201)
def create_transfer(payload: schemas.TransferCreate, ledger: Ledger = Depends(get_ledger)):
    result = ledger.transfers.create_transfer(
        payload.from_account_id,
        payload.to_account_id,
        payload.amount,
        date=payload.date,
        description=payload.description,
        fee=payload.fee,
    )
    raise_for_failure(result)
    return result.transfer


@router.get("", response_model=list[schemas.TransferRead])
def list_transfers(
    account_id: str | None = Query(default=None),
    ledger: Ledger = Depends(get_ledger),
):
    return ledger.transfers.list_transfers(account_id=account_id)


@router.get("/{transfer_id}", response_model=schemas.TransferRead)
def get_transfer(transfer_id: str, ledger: Ledger = Depends(get_ledger)):
    transfer = ledger.transfers.get(transfer_id)
    if not transfer:
        raise HTTPException(status_code=404, detail="Transfer not found")
    return transfer


@router.patch("/{transfer_id}", response_model=schemas.TransferRead)
def update_transfer(transfer_id: str, payload: schemas.TransferUpdate, ledger: Ledger = Depends(get_ledger)):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes provided")
    result = ledger.transfers.update_transfer(transfer_id, **changes)
    raise_for_failure(result)
    return result.transfer


@router.delete("/{transfer_id}", status_code=204)
def delete_transfer(transfer_id: str, ledger: Ledger = Depends(get_ledger)):
    raise_for_failure(ledger.transfers.delete_transfer(transfer_id))
    return None
