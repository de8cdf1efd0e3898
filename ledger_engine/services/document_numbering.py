from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from ledger_engine import models
from ledger_engine.models import PaymentDirection

PAYMENT_PREFIXES = {
    PaymentDirection.outward: "PAY-OUT-",
    PaymentDirection.inward: "PAY-IN-",
}
TRANSFER_PREFIX = "TRF-"
JOURNAL_PREFIX = "GLJ-"


@dataclass(frozen=True)
class SequentialNumber:
    prefix: str
    seq: int
    formatted: str


def format_sequential_number(*, prefix: str, seq: int, width: int = 6) -> str:
    """Format: PREFIX + zero-padded sequence, e.g. PAY-OUT-000043.

    - `seq` is 1-based.
    - sequences wider than `width` are not truncated.
    """

    return f"{prefix}{seq:0{width}d}"


def parse_sequence(number: str | None, prefix: str) -> int | None:
    if not number:
        return None
    m = re.match(rf"^{re.escape(prefix)}(\d+)$", str(number).strip())
    if not m:
        return None
    return int(m.group(1))


def next_sequential_number(
    db: Session,
    *,
    column,
    prefix: str,
    width: int = 6,
    criteria: Iterable[Any] = (),
) -> SequentialNumber:
    """Next number after the last one issued under ``prefix``.

    Scans the owning table for the highest existing number. Two concurrent
    callers can compute the same value; the unique constraint on ``column``
    rejects the loser at flush/commit time.
    """

    q = db.query(column).filter(column.like(f"{prefix}%"))
    for criterion in criteria:
        q = q.filter(criterion)

    last = q.order_by(func.length(column).desc(), column.desc()).limit(1).scalar()
    last_seq = parse_sequence(last, prefix)
    seq = (last_seq or 0) + 1

    return SequentialNumber(
        prefix=prefix,
        seq=seq,
        formatted=format_sequential_number(prefix=prefix, seq=seq, width=width),
    )


def next_payment_number(db: Session, direction: PaymentDirection) -> str:
    return next_sequential_number(
        db,
        column=models.Payment.payment_number,
        prefix=PAYMENT_PREFIXES[direction],
        criteria=[models.Payment.direction == direction],
    ).formatted


def next_transfer_number(db: Session) -> str:
    return next_sequential_number(
        db,
        column=models.FundTransfer.transfer_no,
        prefix=TRANSFER_PREFIX,
    ).formatted


def next_journal_number(db: Session, journal_date: date) -> str:
    return next_sequential_number(
        db,
        column=models.GlJournal.journal_number,
        prefix=f"{JOURNAL_PREFIX}{journal_date.year}-",
        width=4,
    ).formatted
