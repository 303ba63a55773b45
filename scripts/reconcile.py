import argparse

from finledger.config import get_settings
from finledger.database import Base, SessionLocal, engine
from finledger.ledger import Ledger
from finledger.locks import AccountLocks
from finledger.logging_config import configure_logging


def print_report(title, report):
    print(f"{title}: {report.issues_found} issue(s)")
    for issue in report.issues:
        line = f"  [{issue.severity}] {issue.type}"
        if issue.count is not None:
            line += f" x{issue.count}"
        if issue.account_name:
            line += f" {issue.account_name}: cached {issue.cached}, actual {issue.actual}"
        print(f"{line} ({issue.action})")


def main():
    parser = argparse.ArgumentParser(description="Check and repair ledger balances.")
    parser.add_argument("--report-only", action="store_true", help="only print the validation report")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        ledger = Ledger(db, AccountLocks(), settings)
        if args.report_only:
            print_report("Validation", ledger.integrity.run_validations())
            return
        result = ledger.integrity.run_manual_reconciliation()
    finally:
        db.close()

    print_report("Before", result.before)
    print(f"Orphaned transactions cleaned: {result.orphans_cleaned}")
    print(
        f"Auto-fix: {result.fix.accounts_fixed} fixed, {result.fix.accounts_failed} failed "
        f"of {result.fix.accounts_checked} checked"
    )
    print(
        f"Reconciled {result.reconcile.accounts_processed} account(s) in {result.reconcile.duration_ms} ms"
    )
    for error in result.reconcile.errors:
        print(f"  {error.account_id}: {error.error}")
    print_report("After", result.after)


if __name__ == "__main__":
    main()
