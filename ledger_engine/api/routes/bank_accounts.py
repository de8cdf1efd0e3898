# ruff: noqa: B008

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query, Response, status
from sqlalchemy.orm import Session

from ledger_engine.api.deps import _ACTOR_DEP, _DB_DEP
from ledger_engine.database import transactional
from ledger_engine.schemas import ExchangeRateCreate, ExchangeRateRead, ExchangeRateResolved
from ledger_engine.services import exchange_rates
from ledger_engine.services.currency_resolver import Resolved, resolve_account_currency

router = APIRouter(prefix="/bank-accounts", tags=["bank accounts"])


@router.get("/{account_id}/exchange-rates", response_model=List[ExchangeRateRead])
def list_exchange_rates(account_id: int, db: Session = _DB_DEP):
    return exchange_rates.list_rates(db, account_id)


@router.post(
    "/{account_id}/exchange-rates",
    response_model=ExchangeRateRead,
    status_code=status.HTTP_201_CREATED,
)
def add_exchange_rate(
    account_id: int,
    payload: ExchangeRateCreate,
    db: Session = _DB_DEP,
    actor_id: Optional[int] = _ACTOR_DEP,
):
    with transactional(db):
        row = exchange_rates.add_rate(
            db,
            account_id=account_id,
            effective_from=payload.effective_from,
            rate_to_base=payload.rate_to_base,
            actor_id=actor_id,
        )
    return row


@router.delete("/{account_id}/exchange-rates/{rate_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_exchange_rate(account_id: int, rate_id: int, db: Session = _DB_DEP):
    with transactional(db):
        exchange_rates.delete_rate(db, account_id=account_id, rate_id=rate_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{account_id}/exchange-rates/resolve", response_model=ExchangeRateResolved)
def resolve_exchange_rate(
    account_id: int,
    on_date: date = Query(..., alias="date"),
    db: Session = _DB_DEP,
):
    account = exchange_rates.get_bank_account(db, account_id)
    resolution = resolve_account_currency(db, account)
    return ExchangeRateResolved(
        bank_account_id=account.id,
        on_date=on_date,
        currency_code=resolution.code if isinstance(resolution, Resolved) else None,
        rate_to_base=exchange_rates.resolve_rate(db, account.id, on_date),
    )
