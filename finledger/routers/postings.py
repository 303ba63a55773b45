from fastapi import APIRouter, Depends
from .. import schemas
from ..ledger import Ledger, get_ledger, raise_for_failure

router = APIRouter(tags=["postings"])


@router.post("/expenses", response_model=schemas.ExpenseRead, status_code=201)
def create_expense(payload: schemas.ExpenseCreate, ledger: Ledger = Depends(get_ledger)):
    result = ledger.activity.post_expense(**payload.model_dump())
    raise_for_failure(result)
    return result.record


@router.delete("/expenses/{expense_id}", status_code=204)
def delete_expense(expense_id: str, ledger: Ledger = Depends(get_ledger)):
    raise_for_failure(ledger.activity.delete_expense(expense_id))
    return None


@router.post("/incomes", response_model=schemas.IncomeRead, status_code=201)
def create_income(payload: schemas.IncomeCreate, ledger: Ledger = Depends(get_ledger)):
    result = ledger.activity.post_income(**payload.model_dump())
    raise_for_failure(result)
    return result.record


@router.delete("/incomes/{income_id}", status_code=204)
def delete_income(income_id: str, ledger: Ledger = Depends(get_ledger)):
    raise_for_failure(ledger.activity.delete_income(income_id))
    return None
