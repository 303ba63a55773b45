import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .config import get_settings
from .database import Base, SessionLocal, engine
from .ledger import Ledger
from .locks import AccountLocks
from .logging_config import configure_logging
from .routers import accounts, credit_cards, integrity, investments, postings, transactions, transfers

settings = get_settings()
configure_logging(settings.log_level, settings.log_json)
logger = structlog.get_logger(__name__)

app = FastAPI(title="Finance Ledger API")
app.state.account_locks = AccountLocks()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

app.include_router(accounts.router)
app.include_router(credit_cards.router)
app.include_router(transactions.router)
app.include_router(transfers.router)
app.include_router(investments.router)
app.include_router(postings.router)
app.include_router(integrity.router)


def _migrate_db() -> None:
    """Add new columns to existing tables without Alembic."""
    with engine.connect() as conn:
        investment_cols = [
            row[1] for row in conn.execute(text("PRAGMA table_info(investments)"))
        ]
        if "source_account_id" not in investment_cols:
            conn.execute(text("ALTER TABLE investments ADD COLUMN source_account_id TEXT"))

        transfer_cols = [
            row[1] for row in conn.execute(text("PRAGMA table_info(transfers)"))
        ]
        if "fee_transaction_id" not in transfer_cols:
            conn.execute(text("ALTER TABLE transfers ADD COLUMN fee_transaction_id TEXT"))
        if "settlement_transaction_id" not in transfer_cols:
            conn.execute(text("ALTER TABLE transfers ADD COLUMN settlement_transaction_id TEXT"))

        conn.commit()


def _validate_ledger() -> None:
    db = SessionLocal()
    try:
        ledger = Ledger(db, app.state.account_locks, settings)
        report = ledger.integrity.run_validations()
        logger.info("startup_validation", issues_found=report.issues_found)
        if report.auto_fix_available and settings.auto_fix_on_startup:
            fix = ledger.integrity.auto_fix_balance_discrepancies()
            logger.info("startup_auto_fix", fixed=fix.accounts_fixed, failed=fix.accounts_failed)
    finally:
        db.close()


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    _migrate_db()
    _validate_ledger()
