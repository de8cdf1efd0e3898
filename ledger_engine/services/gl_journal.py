"""General-ledger journal construction and posting.

Payments and fund transfers post one journal per approval. Re-approval
soft-deletes the previous journal for the same source before posting the new
one, so at most one active journal exists per ``(source_type, source_id)``.

Line construction is pure (no writes); ``post_journal`` is the only writer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ledger_engine import models
from ledger_engine.config import settings
from ledger_engine.core.errors import ValidationError
from ledger_engine.models import AllocationType, JournalSourceType, PaymentDirection, PaymentMethod
from ledger_engine.services.document_numbering import next_journal_number
from ledger_engine.services.obligations import spec_for

logger = logging.getLogger("ledger_engine")

BALANCE_TOLERANCE = 0.01

_ENTITY_TYPES = {
    PaymentDirection.outward: "SUPPLIER",
    PaymentDirection.inward: "CUSTOMER",
}


@dataclass(frozen=True)
class JournalLine:
    account_id: int
    debit: float = 0.0
    credit: float = 0.0
    description: str | None = None
    entity_type: str | None = None
    entity_id: int | None = None
    invoice_id: int | None = None
    is_advance: bool = False


@dataclass(frozen=True)
class JournalRequest:
    source_type: JournalSourceType
    source_id: int
    source_name: str | None
    journal_date: date
    lines: list[JournalLine] = field(default_factory=list)
    memo: str | None = None
    currency_id: int | None = None
    exchange_rate: float = 1.0
    foreign_amount: float | None = None
    total_amount: float | None = None
    reconcile_date: date | None = None
    reconcile_number: str | None = None
    created_by: int | None = None


def resolve_control_account(db: Session, *, code: str | None, name: str) -> models.ChartAccount:
    """Find a control account by configured code, falling back to its name."""

    CA = models.ChartAccount
    if code:
        row = db.query(CA).filter(CA.code == code).first()
        if row is not None:
            return row
    row = db.query(CA).filter(func.lower(CA.name) == name.strip().lower()).order_by(CA.id).first()
    if row is None:
        raise ValidationError(f"{name} account not found in chart of accounts")
    return row


def accounts_payable(db: Session) -> models.ChartAccount:
    return resolve_control_account(
        db, code=settings.accounts_payable_code, name=settings.accounts_payable_name
    )


def accounts_receivable(db: Session) -> models.ChartAccount:
    return resolve_control_account(
        db, code=settings.accounts_receivable_code, name=settings.accounts_receivable_name
    )


def cash_in_hand(db: Session) -> models.ChartAccount:
    return resolve_control_account(
        db, code=settings.cash_account_code, name=settings.cash_account_name
    )


def settlement_account_id(db: Session, payment: models.Payment) -> int:
    """Ledger account the money physically moves through."""

    if payment.payment_method == PaymentMethod.cash:
        return int(cash_in_hand(db).id)

    account = payment.bank_account
    if account is None or not account.coa_id:
        raise ValidationError(
            "Bank account has no linked chart of accounts entry",
            details={"bank_account_id": payment.bank_account_id},
        )
    return int(account.coa_id)


def build_payment_journal_lines(db: Session, payment: models.Payment) -> list[JournalLine]:
    """Two lines per allocation, in the settlement currency (``amount_bank``).

    OUT: debit Accounts Payable, credit settlement.
    IN:  debit settlement, credit Accounts Receivable.
    """

    if not payment.allocations:
        raise ValidationError("Payment has no allocations to post")

    settlement_id = settlement_account_id(db, payment)
    entity_type = _ENTITY_TYPES[payment.direction]
    if payment.direction == PaymentDirection.outward:
        control_id = int(accounts_payable(db).id)
    else:
        control_id = int(accounts_receivable(db).id)

    lines: list[JournalLine] = []
    for alloc in payment.allocations:
        entry = spec_for(payment.direction, alloc.alloc_type)
        amount = float(alloc.amount_bank)
        is_advance = entry.alloc_type == AllocationType.advance
        description = f"{payment.payment_number} {entry.label} #{alloc.reference_id}"
        common = dict(
            entity_type=entity_type,
            entity_id=payment.party_id,
            invoice_id=alloc.reference_id,
            is_advance=is_advance,
            description=description,
        )
        if payment.direction == PaymentDirection.outward:
            lines.append(JournalLine(account_id=control_id, debit=amount, **common))
            lines.append(JournalLine(account_id=settlement_id, credit=amount, **common))
        else:
            lines.append(JournalLine(account_id=settlement_id, debit=amount, **common))
            lines.append(JournalLine(account_id=control_id, credit=amount, **common))
    return lines


def payment_journal_request(
    db: Session,
    payment: models.Payment,
    *,
    actor_id: int | None,
    reconcile_date: date | None = None,
    reconcile_number: str | None = None,
) -> JournalRequest:
    if payment.direction == PaymentDirection.outward:
        source_type = JournalSourceType.outward_payment
        memo = f"Outward payment {payment.payment_number}"
    else:
        source_type = JournalSourceType.inward_payment
        memo = f"Inward payment {payment.payment_number}"

    return JournalRequest(
        source_type=source_type,
        source_id=int(payment.id),
        source_name=payment.payment_number,
        journal_date=payment.transaction_date,
        lines=build_payment_journal_lines(db, payment),
        memo=payment.notes or memo,
        currency_id=payment.currency_id,
        exchange_rate=float(payment.fx_rate or 1.0),
        foreign_amount=float(payment.total_amount_bank),
        total_amount=float(payment.total_amount_base),
        reconcile_date=reconcile_date,
        reconcile_number=reconcile_number,
        created_by=actor_id,
    )


def build_transfer_journal_lines(transfer: models.FundTransfer, *, amount: float) -> list[JournalLine]:
    from_account = transfer.from_bank_account
    to_account = transfer.to_bank_account
    if from_account is None or not from_account.coa_id:
        raise ValidationError("Source bank account has no linked chart of accounts entry")
    if to_account is None or not to_account.coa_id:
        raise ValidationError("Destination bank account has no linked chart of accounts entry")

    description = f"Fund transfer {transfer.transfer_no}"
    return [
        JournalLine(account_id=int(to_account.coa_id), debit=amount, description=description),
        JournalLine(account_id=int(from_account.coa_id), credit=amount, description=description),
    ]


def transfer_journal_request(
    transfer: models.FundTransfer, *, from_is_base: bool, actor_id: int | None
) -> JournalRequest:
    """Journal in the source currency at the source rate.

    A base-currency source posts at rate 1, so the foreign and base header
    amounts are both ``amount_from_currency``.
    """

    rate = 1.0 if from_is_base else float(transfer.rate_from_to_base)
    amount = float(transfer.amount_from_currency)

    return JournalRequest(
        source_type=JournalSourceType.fund_transfer,
        source_id=int(transfer.id),
        source_name=transfer.transfer_no,
        journal_date=transfer.transfer_date,
        lines=build_transfer_journal_lines(transfer, amount=amount),
        memo=transfer.notes or f"Fund transfer {transfer.transfer_no}",
        currency_id=transfer.from_currency_id,
        exchange_rate=rate,
        foreign_amount=amount,
        total_amount=float(transfer.amount_base),
        created_by=actor_id,
    )


def ensure_balanced(lines: list[JournalLine]) -> None:
    if not lines:
        raise ValidationError("Journal must have at least one line")
    total_debit = sum(float(line.debit or 0.0) for line in lines)
    total_credit = sum(float(line.credit or 0.0) for line in lines)
    if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
        raise ValidationError(
            f"Journal is not balanced (debit {total_debit:.2f}, credit {total_credit:.2f})",
            details={"debit": round(total_debit, 2), "credit": round(total_credit, 2)},
        )


def _line_amounts(line: JournalLine, rate: float) -> tuple[float, float]:
    amount = float(line.debit or 0.0) or float(line.credit or 0.0)
    if abs(rate - 1.0) > settings.rate_epsilon:
        return amount, amount * rate
    return amount, amount


def post_journal(db: Session, request: JournalRequest) -> models.GlJournal:
    ensure_balanced(request.lines)

    rate = float(request.exchange_rate or 1.0)
    journal = models.GlJournal(
        journal_number=next_journal_number(db, request.journal_date),
        journal_date=request.journal_date,
        source_type=request.source_type,
        source_id=int(request.source_id),
        source_name=request.source_name,
        source_date=request.journal_date,
        memo=request.memo,
        currency_id=request.currency_id,
        exchange_rate=rate,
        foreign_amount=request.foreign_amount,
        total_amount=request.total_amount,
        reconcile_date=request.reconcile_date,
        reconcile_number=request.reconcile_number,
        is_deleted=False,
        created_by=request.created_by,
    )
    for idx, line in enumerate(request.lines, start=1):
        foreign_amount, total_amount = _line_amounts(line, rate)
        journal.lines.append(
            models.GlJournalLine(
                line_no=idx,
                account_id=line.account_id,
                debit=float(line.debit or 0.0),
                credit=float(line.credit or 0.0),
                entity_type=line.entity_type,
                entity_id=line.entity_id,
                description=line.description,
                currency_id=request.currency_id,
                foreign_amount=foreign_amount,
                total_amount=total_amount,
                is_advance=line.is_advance,
                invoice_id=line.invoice_id,
            )
        )

    db.add(journal)
    db.flush()
    logger.info(
        "journal_posted",
        extra={
            "journal_number": journal.journal_number,
            "source_type": request.source_type.value,
            "source_id": int(request.source_id),
            "lines": len(request.lines),
        },
    )
    return journal


def soft_delete_journals(db: Session, *, source_type: JournalSourceType, source_id: int) -> int:
    J = models.GlJournal
    count = (
        db.query(J)
        .filter(J.source_type == source_type)
        .filter(J.source_id == int(source_id))
        .filter(J.is_deleted.is_(False))
        .update({"is_deleted": True}, synchronize_session=False)
    )
    if count:
        logger.info(
            "journals_soft_deleted",
            extra={"source_type": source_type.value, "source_id": int(source_id), "count": count},
        )
    return int(count or 0)


def replace_journal(db: Session, request: JournalRequest) -> models.GlJournal:
    """Soft-delete every active journal for the source, then post ``request``."""

    soft_delete_journals(db, source_type=request.source_type, source_id=request.source_id)
    return post_journal(db, request)


def list_journals(
    db: Session,
    *,
    source_type: JournalSourceType,
    source_id: int,
    include_deleted: bool = False,
) -> list[models.GlJournal]:
    J = models.GlJournal
    q = (
        db.query(J)
        .options(selectinload(J.lines))
        .filter(J.source_type == source_type)
        .filter(J.source_id == int(source_id))
    )
    if not include_deleted:
        q = q.filter(J.is_deleted.is_(False))
    return q.order_by(J.created_at.desc(), J.id.desc()).all()
