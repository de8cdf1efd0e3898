"""Seed reference data

Creates the base currency and the control accounts journals post against
(Accounts Payable, Accounts Receivable, Cash in Hand). Idempotent.
Run with: python -m ledger_engine.scripts.seed_reference_data
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from ledger_engine import models
from ledger_engine.config import settings
from ledger_engine.database import SessionLocal

logger = logging.getLogger("ledger_engine")


def ensure_base_currency(db: Session) -> models.Currency:
    row = db.query(models.Currency).filter(models.Currency.code == settings.base_currency).first()
    if row is None:
        row = models.Currency(code=settings.base_currency, name=settings.base_currency)
        db.add(row)
        db.flush()
    return row


def ensure_control_accounts(db: Session) -> dict[str, models.ChartAccount]:
    specs = [
        (settings.accounts_payable_code, settings.accounts_payable_name),
        (settings.accounts_receivable_code, settings.accounts_receivable_name),
        (settings.cash_account_code, settings.cash_account_name),
    ]

    out: dict[str, models.ChartAccount] = {}
    for code, name in specs:
        q = db.query(models.ChartAccount)
        if code:
            row = q.filter(models.ChartAccount.code == code).first()
        else:
            row = q.filter(func.lower(models.ChartAccount.name) == name.lower()).first()
        if row is None:
            row = models.ChartAccount(code=code, name=name)
            db.add(row)
            db.flush()
        out[name] = row
    return out


def seed_reference_data(db: Session) -> None:
    ensure_base_currency(db)
    ensure_control_accounts(db)
    db.commit()
    logger.info("reference_data_seeded", extra={"base_currency": settings.base_currency})


def main():
    db = SessionLocal()
    try:
        seed_reference_data(db)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
