from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sqlalchemy.orm import Session

from ledger_engine import models
from ledger_engine.config import settings


@dataclass(frozen=True)
class Resolved:
    code: str
    currency_id: int | None
    is_base: bool


@dataclass(frozen=True)
class Unresolved:
    reason: str


CurrencyResolution = Union[Resolved, Unresolved]


def _normalize_code(code: str | None) -> str | None:
    s = str(code or "").strip().upper()
    return s or None


def is_base_currency(code: str | None) -> bool:
    return _normalize_code(code) == settings.base_currency


def currency_id_for_code(db: Session, code: str | None) -> int | None:
    normalized = _normalize_code(code)
    if normalized is None:
        return None
    row = db.query(models.Currency).filter(models.Currency.code == normalized).first()
    return int(row.id) if row is not None else None


def base_currency(db: Session) -> Resolved:
    return Resolved(
        code=settings.base_currency,
        currency_id=currency_id_for_code(db, settings.base_currency),
        is_base=True,
    )


def resolve_account_currency(db: Session, account: models.BankAccount) -> CurrencyResolution:
    """Determine the settlement currency of a bank/cash account.

    Order:
    1. the account's own currency code and currency id;
    2. code missing, id present: read the code from the currency row;
    3. id missing, code present: look the id up by code.

    An account with neither code nor id settles in the base currency. A
    dangling currency id with no code cannot be resolved. A missing id never
    fails resolution; it degrades to ``None``.
    """

    code = _normalize_code(account.currency_code)
    currency_id = account.currency_id

    if code is None and currency_id is not None:
        row = db.get(models.Currency, int(currency_id))
        if row is None:
            return Unresolved(
                reason=f"Currency {currency_id} linked to account {account.id} does not exist"
            )
        code = _normalize_code(row.code)
        if code is None:
            return Unresolved(reason=f"Currency {currency_id} has no code")

    if code is None:
        return base_currency(db)

    if currency_id is None:
        currency_id = currency_id_for_code(db, code)

    return Resolved(code=code, currency_id=currency_id, is_base=is_base_currency(code))
