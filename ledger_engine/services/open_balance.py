from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from ledger_engine import models
from ledger_engine.models import ObligationKind
from ledger_engine.services.obligations import OBLIGATIONS, ObligationSpec, load_obligation

logger = logging.getLogger("ledger_engine")


def allocated_amount(
    db: Session,
    entry: ObligationSpec,
    obligation,
    *,
    exclude_payment_id: int | None = None,
) -> float:
    """Sum of allocations against ``obligation`` from non-deleted payments.

    Each allocation counts in the obligation's own currency when the paying
    transaction settled in that currency (``amount_bank``), otherwise in the
    base currency (``amount_base``).
    """

    P = models.Payment
    A = models.PaymentAllocation

    same_currency = and_(P.currency_id.isnot(None), P.currency_id == obligation.currency_id)
    amount = case((same_currency, A.amount_bank), else_=A.amount_base)

    q = (
        db.query(func.coalesce(func.sum(amount), 0.0))
        .select_from(A)
        .join(P, P.id == A.payment_id)
        .filter(A.alloc_type == entry.alloc_type)
        .filter(A.reference_id == obligation.id)
        .filter(P.direction == entry.direction)
        .filter(P.is_deleted.is_(False))
    )
    if exclude_payment_id is not None:
        q = q.filter(P.id != int(exclude_payment_id))

    return float(q.scalar() or 0.0)


def recompute_open_balance(db: Session, kind: ObligationKind, obligation_id: int) -> float:
    entry = OBLIGATIONS[kind]
    obligation = load_obligation(db, entry, obligation_id)
    db.flush()
    open_balance = float(obligation.total or 0.0) - allocated_amount(db, entry, obligation)
    obligation.open_balance = open_balance
    db.add(obligation)
    db.flush()
    return open_balance


def recompute_many(db: Session, refs: Iterable[tuple[ObligationKind, int]]) -> dict[tuple[ObligationKind, int], float]:
    results: dict[tuple[ObligationKind, int], float] = {}
    for kind, obligation_id in sorted(set(refs), key=lambda r: (r[0].value, r[1])):
        results[(kind, obligation_id)] = recompute_open_balance(db, kind, obligation_id)
    if results:
        logger.info("open_balances_recomputed", extra={"count": len(results)})
    return results
