from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from .. import models, schemas
from ..database import get_db
from ..ledger import Ledger, get_ledger, raise_for_failure

router = APIRouter(prefix="/credit-cards", tags=["credit-cards"])


@router.post("", response_model=schemas.CreditCardRead, status_code=201)
def create_credit_card(card: schemas.CreditCardCreate, ledger: Ledger = Depends(get_ledger)):
    result = ledger.activity.open_credit_card(**card.model_dump())
    raise_for_failure(result)
    return result.record


@router.get("", response_model=list[schemas.CreditCardRead])
def list_credit_cards(db: Session = Depends(get_db)):
    return db.query(models.CreditCard).order_by(models.CreditCard.created_at).all()


@router.get("/{card_id}", response_model=schemas.CreditCardRead)
def get_credit_card(card_id: str, db: Session = Depends(get_db)):
    card = db.get(models.CreditCard, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Credit card not found")
    return card


@router.delete("/{card_id}", status_code=204)
def delete_credit_card(card_id: str, db: Session = Depends(get_db), ledger: Ledger = Depends(get_ledger)):
    if not db.get(models.CreditCard, card_id):
        raise HTTPException(status_code=404, detail="Credit card not found")
    raise_for_failure(ledger.activity.delete_account(card_id))
    return None


@router.post("/{card_id}/adjust", response_model=schemas.TransactionRead | None)
def adjust_card_balance(
    card_id: str,
    adjustment: schemas.BalanceAdjustment,
    db: Session = Depends(get_db),
    ledger: Ledger = Depends(get_ledger),
):
    """``new_balance`` is the debt the statement shows."""
    if not db.get(models.CreditCard, card_id):
        raise HTTPException(status_code=404, detail="Credit card not found")
    result = ledger.activity.adjust_balance(
        card_id,
        adjustment.new_balance,
        note=adjustment.note,
        adjusted_on=adjustment.date,
    )
    raise_for_failure(result)
    return result.transaction
