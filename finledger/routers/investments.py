from fastapi import APIRouter, Depends, HTTPException
from .. import schemas
from ..ledger import Ledger, get_ledger, raise_for_failure

router = APIRouter(prefix="/investments", tags=["investments"])


def _require_investment(ledger: Ledger, investment_id: str):
    investment = ledger.investments.get(investment_id)
    if not investment:
        raise HTTPException(status_code=404, detail="Investment not found")
    return investment


@router.post("", response_model=schemas.InvestmentRead, status_code=201)
def create_investment(payload: schemas.InvestmentCreate, ledger: Ledger = Depends(get_ledger)):
    result = ledger.investments.create_investment(**payload.model_dump())
    raise_for_failure(result)
    return result.investment


@router.get("", response_model=list[schemas.InvestmentRead])
def list_investments(ledger: Ledger = Depends(get_ledger)):
    return ledger.investments.list_investments()


@router.get("/migration-status", response_model=schemas.MigrationStatusRead)
def get_migration_status(ledger: Ledger = Depends(get_ledger)):
    return ledger.investments.get_migration_status()


@router.get("/unlinked", response_model=list[schemas.InvestmentRead])
def list_unlinked_investments(ledger: Ledger = Depends(get_ledger)):
    return ledger.investments.get_unlinked_investments()


@router.post("/link", response_model=schemas.BulkLinkRead)
def bulk_link_investments(payload: schemas.BulkLinkRequest, ledger: Ledger = Depends(get_ledger)):
    links = [(link.investment_id, link.source_account_id) for link in payload.links]
    return ledger.investments.bulk_link_investments(links)


@router.delete("/contributions/{contribution_id}", status_code=204)
def delete_contribution(contribution_id: str, ledger: Ledger = Depends(get_ledger)):
    raise_for_failure(ledger.investments.delete_contribution(contribution_id))
    return None


@router.delete("/withdrawals/{withdrawal_id}", status_code=204)
def delete_withdrawal(withdrawal_id: str, ledger: Ledger = Depends(get_ledger)):
    raise_for_failure(ledger.investments.delete_withdrawal(withdrawal_id))
    return None


@router.get("/{investment_id}", response_model=schemas.InvestmentRead)
def get_investment(investment_id: str, ledger: Ledger = Depends(get_ledger)):
    return _require_investment(ledger, investment_id)


@router.get("/{investment_id}/total", response_model=schemas.InvestmentTotal)
def get_total_invested(investment_id: str, ledger: Ledger = Depends(get_ledger)):
    _require_investment(ledger, investment_id)
    total = ledger.investments.get_total_invested(investment_id)
    return schemas.InvestmentTotal(investment_id=investment_id, total_invested=float(total))


@router.post("/{investment_id}/link", response_model=schemas.InvestmentRead)
def link_investment(investment_id: str, payload: schemas.InvestmentLink, ledger: Ledger = Depends(get_ledger)):
    result = ledger.investments.link_investment_to_account(investment_id, payload.source_account_id)
    raise_for_failure(result)
    return result.investment


@router.post("/{investment_id}/contributions", response_model=schemas.ContributionRead, status_code=201)
def add_contribution(investment_id: str, payload: schemas.ContributionCreate, ledger: Ledger = Depends(get_ledger)):
    result = ledger.investments.add_contribution(
        investment_id,
        payload.amount,
        source_account_id=payload.source_account_id,
        source=payload.source,
        contribution_date=payload.date,
    )
    raise_for_failure(result)
    return result.contribution


@router.get("/{investment_id}/contributions", response_model=list[schemas.ContributionRead])
def list_contributions(investment_id: str, ledger: Ledger = Depends(get_ledger)):
    _require_investment(ledger, investment_id)
    return ledger.investments.get_contributions(investment_id)


@router.post("/{investment_id}/withdrawals", response_model=schemas.WithdrawalRead, status_code=201)
def process_withdrawal(investment_id: str, payload: schemas.WithdrawalCreate, ledger: Ledger = Depends(get_ledger)):
    result = ledger.investments.process_withdrawal(
        investment_id,
        payload.amount,
        destination_account_id=payload.destination_account_id,
        reason=payload.reason,
        withdrawal_date=payload.date,
    )
    raise_for_failure(result)
    return result.withdrawal


@router.get("/{investment_id}/withdrawals", response_model=list[schemas.WithdrawalRead])
def list_withdrawals(investment_id: str, ledger: Ledger = Depends(get_ledger)):
    _require_investment(ledger, investment_id)
    return ledger.investments.get_withdrawals(investment_id)
