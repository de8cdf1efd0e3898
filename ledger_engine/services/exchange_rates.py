from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from ledger_engine import models
from ledger_engine.core.errors import NotFoundError, ValidationError
from ledger_engine.services.currency_resolver import Unresolved, resolve_account_currency

logger = logging.getLogger("ledger_engine")


def get_bank_account(db: Session, account_id: int) -> models.BankAccount:
    account = db.get(models.BankAccount, int(account_id))
    if account is None:
        raise NotFoundError(f"Bank account {account_id} not found")
    return account


def resolve_rate(db: Session, account_id: int, on_date: date) -> float | None:
    """Rate converting one unit of the account's currency into the base currency.

    Base-currency accounts and accounts without a currency code are always
    1.0. Otherwise the newest entry effective on or before ``on_date``; ``None``
    when there is no such entry. Read-only.
    """

    account = get_bank_account(db, account_id)
    resolution = resolve_account_currency(db, account)
    # No usable currency code; saving rejects unresolved accounts separately.
    if isinstance(resolution, Unresolved) or resolution.is_base:
        return 1.0

    row = (
        db.query(models.BankExchangeRate)
        .filter(models.BankExchangeRate.bank_account_id == account.id)
        .filter(models.BankExchangeRate.effective_from <= on_date)
        .order_by(models.BankExchangeRate.effective_from.desc())
        .first()
    )
    if row is None:
        return None
    return float(row.rate_to_base)


def require_rate(db: Session, account_id: int, on_date: date, *, currency_code: str | None) -> float:
    rate = resolve_rate(db, account_id, on_date)
    if rate is None:
        raise ValidationError(
            f"No exchange rate found for account currency {currency_code or '?'} on {on_date.isoformat()}",
            details={"bank_account_id": int(account_id), "date": on_date.isoformat()},
        )
    return rate


def add_rate(
    db: Session,
    *,
    account_id: int,
    effective_from: date,
    rate_to_base: float,
    actor_id: int | None,
) -> models.BankExchangeRate:
    account = get_bank_account(db, account_id)
    if rate_to_base is None or float(rate_to_base) <= 0:
        raise ValidationError("Exchange rate must be greater than zero")

    duplicate = (
        db.query(models.BankExchangeRate.id)
        .filter(models.BankExchangeRate.bank_account_id == account.id)
        .filter(models.BankExchangeRate.effective_from == effective_from)
        .first()
    )
    if duplicate is not None:
        raise ValidationError(
            f"Exchange rate for {effective_from.isoformat()} already exists for this account"
        )

    row = models.BankExchangeRate(
        bank_account_id=account.id,
        effective_from=effective_from,
        rate_to_base=float(rate_to_base),
        created_by=actor_id,
    )
    db.add(row)
    db.flush()
    logger.info(
        "exchange_rate_added",
        extra={
            "bank_account_id": account.id,
            "effective_from": effective_from.isoformat(),
            "rate_to_base": float(rate_to_base),
        },
    )
    return row


def list_rates(db: Session, account_id: int) -> list[models.BankExchangeRate]:
    account = get_bank_account(db, account_id)
    return (
        db.query(models.BankExchangeRate)
        .filter(models.BankExchangeRate.bank_account_id == account.id)
        .order_by(models.BankExchangeRate.effective_from.desc())
        .all()
    )


def delete_rate(db: Session, *, account_id: int, rate_id: int) -> None:
    row = (
        db.query(models.BankExchangeRate)
        .filter(models.BankExchangeRate.id == int(rate_id))
        .filter(models.BankExchangeRate.bank_account_id == int(account_id))
        .first()
    )
    if row is None:
        raise NotFoundError(f"Exchange rate {rate_id} not found")
    db.delete(row)
    db.flush()
