"""Outward (supplier) and inward (customer) payments.

Every function here works inside the caller's transaction: it flushes but
never commits. Routes wrap each call in ``ledger_engine.database.transactional``.

Amounts:
- ``amount_bank`` is in the settlement account's currency;
- ``amount_base = amount_bank * fx_rate`` where ``fx_rate`` is frozen at save time.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from sqlalchemy.orm import Session, selectinload

from ledger_engine import models
from ledger_engine.core.errors import NotFoundError, ValidationError
from ledger_engine.models import (
    ApprovalStatus,
    HistoryAction,
    HistoryModule,
    ObligationKind,
    PartyType,
    PaymentDirection,
    PaymentMethod,
)
from ledger_engine.schemas.payments import PaymentCreate
from ledger_engine.services import approvals
from ledger_engine.services.allocation_validator import (
    AllocationInput,
    ValidatedAllocation,
    validate_allocations,
)
from ledger_engine.services.currency_resolver import (
    Unresolved,
    base_currency,
    resolve_account_currency,
)
from ledger_engine.services.document_numbering import next_payment_number
from ledger_engine.services.exchange_rates import get_bank_account, require_rate
from ledger_engine.services.gl_journal import (
    list_journals,
    payment_journal_request,
    replace_journal,
    soft_delete_journals,
)
from ledger_engine.services.history import append_history, list_history
from ledger_engine.services.obligations import spec_for
from ledger_engine.services.open_balance import recompute_many

logger = logging.getLogger("ledger_engine")

PARTY_TYPES = {
    PaymentDirection.outward: PartyType.supplier,
    PaymentDirection.inward: PartyType.customer,
}
HISTORY_MODULES = {
    PaymentDirection.outward: HistoryModule.outward_payment,
    PaymentDirection.inward: HistoryModule.inward_payment,
}
_PARTY_MODELS = {
    PartyType.supplier: models.Supplier,
    PartyType.customer: models.Customer,
}

# Fields compared for the UPDATED history entry.
_TRACKED_FIELDS = (
    "party_id",
    "payment_method",
    "bank_account_id",
    "transaction_date",
    "cheque_no",
    "cheque_date",
    "tt_ref_no",
    "value_date",
    "reference_no",
    "notes",
    "currency_code",
    "fx_rate",
    "total_amount_bank",
    "total_amount_base",
)

ObligationRef = tuple[ObligationKind, int]


@dataclass(frozen=True)
class _Settlement:
    account: models.BankAccount | None
    currency_code: str
    currency_id: int | None
    fx_rate: float


def _ensure_party(db: Session, direction: PaymentDirection, party_id: int) -> None:
    party_type = PARTY_TYPES[direction]
    if db.get(_PARTY_MODELS[party_type], int(party_id)) is None:
        raise NotFoundError(f"{party_type.value.title()} {party_id} not found")


def _check_method_fields(data: PaymentCreate) -> None:
    method = data.payment_method
    if method == PaymentMethod.cheque:
        if not data.bank_account_id:
            raise ValidationError("Bank account is required for cheque payments")
        if not data.cheque_no:
            raise ValidationError("Cheque number is required for cheque payments")
        if not data.cheque_date:
            raise ValidationError("Cheque date is required for cheque payments")
    elif method == PaymentMethod.tt:
        if not data.bank_account_id:
            raise ValidationError("Bank account is required for TT payments")
        if not data.tt_ref_no:
            raise ValidationError("TT reference number is required for TT payments")
        if not data.value_date:
            raise ValidationError("Value date is required for TT payments")


def _resolve_settlement(db: Session, data: PaymentCreate) -> _Settlement:
    if not data.bank_account_id:
        base = base_currency(db)
        return _Settlement(None, base.code, base.currency_id, 1.0)

    account = get_bank_account(db, data.bank_account_id)
    resolution = resolve_account_currency(db, account)
    if isinstance(resolution, Unresolved):
        raise ValidationError(
            f"Could not resolve currency for bank account: {resolution.reason}",
            details={"bank_account_id": account.id},
        )
    if resolution.is_base:
        rate = 1.0
    else:
        rate = require_rate(
            db, account.id, data.transaction_date, currency_code=resolution.code
        )
    return _Settlement(account, resolution.code, resolution.currency_id, rate)


def _validate(
    db: Session,
    *,
    direction: PaymentDirection,
    data: PaymentCreate,
    fx_rate: float,
    exclude_payment_id: int | None = None,
) -> list[ValidatedAllocation]:
    return validate_allocations(
        db,
        direction=direction,
        party_id=data.party_id,
        allocations=[
            AllocationInput(alloc_type=a.alloc_type, reference_id=a.reference_id, amount=a.amount)
            for a in data.allocations
        ],
        fx_rate=fx_rate,
        exclude_payment_id=exclude_payment_id,
    )


def _totals(validated: Iterable[ValidatedAllocation]) -> tuple[float, float]:
    items = list(validated)
    total_bank = sum(v.amount_bank for v in items)
    total_base = sum(v.amount_base for v in items)
    if total_bank <= 0:
        raise ValidationError("Payment total must be greater than zero")
    return total_bank, total_base


def _allocation_row(
    v: ValidatedAllocation, *, party_id: int, actor_id: int | None
) -> models.PaymentAllocation:
    return models.PaymentAllocation(
        alloc_type=v.alloc_type,
        reference_id=v.reference_id,
        party_id=party_id,
        amount_bank=v.amount_bank,
        amount_base=v.amount_base,
        created_by=actor_id,
    )


def _obligation_refs(payment: models.Payment) -> set[ObligationRef]:
    return {
        (spec_for(payment.direction, a.alloc_type).kind, int(a.reference_id))
        for a in payment.allocations
    }


def _apply_fields(payment: models.Payment, data: PaymentCreate, settlement: _Settlement) -> None:
    payment.party_id = data.party_id
    payment.payment_method = data.payment_method
    payment.bank_account = settlement.account
    payment.transaction_date = data.transaction_date
    payment.cheque_no = data.cheque_no
    payment.cheque_date = data.cheque_date
    payment.tt_ref_no = data.tt_ref_no
    payment.value_date = data.value_date
    payment.reference_no = data.reference_no
    payment.notes = data.notes
    payment.currency_id = settlement.currency_id
    payment.currency_code = settlement.currency_code
    payment.fx_rate = settlement.fx_rate


def _snapshot(payment: models.Payment) -> dict[str, Any]:
    return {name: getattr(payment, name) for name in _TRACKED_FIELDS}


def _field_changes(before: dict[str, Any], after: dict[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for name in _TRACKED_FIELDS:
        old, new = before.get(name), after.get(name)
        if isinstance(old, float) or isinstance(new, float):
            if old is not None and new is not None and abs(float(old) - float(new)) < 1e-9:
                continue
        elif old == new:
            continue
        changes[name] = {"from": old, "to": new}
    return changes


def _amount_key(amount_bank: float, amount_base: float) -> tuple[float, float]:
    return (round(float(amount_bank), 6), round(float(amount_base), 6))


def _reconcile_allocations(
    payment: models.Payment,
    validated: list[ValidatedAllocation],
    *,
    actor_id: int | None,
    currency_changed: bool,
) -> set[ObligationRef]:
    """Replace the allocation set, rewriting only obligations whose rows differ.

    Returns every obligation whose balance may have moved: rewritten ones,
    removed ones and, when the settlement currency changed, all of them.
    """

    old: dict[ObligationRef, list[models.PaymentAllocation]] = defaultdict(list)
    for row in payment.allocations:
        old[(spec_for(payment.direction, row.alloc_type).kind, int(row.reference_id))].append(row)
    new: dict[ObligationRef, list[ValidatedAllocation]] = defaultdict(list)
    for v in validated:
        new[v.obligation_ref].append(v)

    touched: set[ObligationRef] = set()
    for key in set(old) | set(new):
        old_rows = old.get(key, [])
        new_rows = new.get(key, [])
        same = sorted(_amount_key(r.amount_bank, r.amount_base) for r in old_rows) == sorted(
            _amount_key(v.amount_bank, v.amount_base) for v in new_rows
        )
        if same:
            for row in old_rows:
                row.party_id = payment.party_id
            if currency_changed:
                touched.add(key)
            continue

        for row in old_rows:
            payment.allocations.remove(row)
        for v in new_rows:
            payment.allocations.append(_allocation_row(v, party_id=payment.party_id, actor_id=actor_id))
        touched.add(key)
    return touched


def get_payment(db: Session, direction: PaymentDirection, payment_id: int) -> models.Payment:
    payment = (
        db.query(models.Payment)
        .options(selectinload(models.Payment.allocations))
        .filter(models.Payment.id == int(payment_id))
        .filter(models.Payment.direction == direction)
        .filter(models.Payment.is_deleted.is_(False))
        .first()
    )
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def create_payment(
    db: Session,
    direction: PaymentDirection,
    data: PaymentCreate,
    *,
    actor_id: int | None,
) -> models.Payment:
    _ensure_party(db, direction, data.party_id)
    _check_method_fields(data)
    settlement = _resolve_settlement(db, data)
    validated = _validate(db, direction=direction, data=data, fx_rate=settlement.fx_rate)
    total_bank, total_base = _totals(validated)

    payment = models.Payment(
        payment_number=next_payment_number(db, direction),
        direction=direction,
        party_type=PARTY_TYPES[direction],
        status=ApprovalStatus.draft,
        created_by=actor_id,
        total_amount_bank=total_bank,
        total_amount_base=total_base,
    )
    _apply_fields(payment, data, settlement)
    payment.allocations = [
        _allocation_row(v, party_id=data.party_id, actor_id=actor_id) for v in validated
    ]
    db.add(payment)
    db.flush()

    recompute_many(db, [v.obligation_ref for v in validated])
    append_history(
        db,
        module=HISTORY_MODULES[direction],
        entity_id=payment.id,
        actor_id=actor_id,
        action=HistoryAction.created,
        details={"payment_number": payment.payment_number},
    )
    logger.info(
        "payment_created",
        extra={
            "payment_id": payment.id,
            "payment_number": payment.payment_number,
            "direction": direction.value,
            "total_amount_base": total_base,
        },
    )
    return payment


def update_payment(
    db: Session,
    direction: PaymentDirection,
    payment_id: int,
    data: PaymentCreate,
    *,
    actor_id: int | None,
) -> models.Payment:
    payment = get_payment(db, direction, payment_id)
    approvals.ensure_editable(payment)

    _ensure_party(db, direction, data.party_id)
    _check_method_fields(data)
    settlement = _resolve_settlement(db, data)
    validated = _validate(
        db,
        direction=direction,
        data=data,
        fx_rate=settlement.fx_rate,
        exclude_payment_id=payment.id,
    )
    total_bank, total_base = _totals(validated)

    before = _snapshot(payment)
    currency_changed = payment.currency_id != settlement.currency_id
    _apply_fields(payment, data, settlement)
    payment.total_amount_bank = total_bank
    payment.total_amount_base = total_base
    touched = _reconcile_allocations(
        payment, validated, actor_id=actor_id, currency_changed=currency_changed
    )
    approvals.mark_edited(payment, actor_id=actor_id)
    db.flush()

    recompute_many(db, touched)
    changes = _field_changes(before, _snapshot(payment))
    if touched:
        changes["allocations"] = sorted(f"{kind.value}:{ref_id}" for kind, ref_id in touched)
    append_history(
        db,
        module=HISTORY_MODULES[direction],
        entity_id=payment.id,
        actor_id=actor_id,
        action=HistoryAction.updated,
        details={"payment_number": payment.payment_number, "changes": changes},
    )
    logger.info(
        "payment_updated",
        extra={"payment_id": payment.id, "obligations_touched": len(touched)},
    )
    return payment


def change_payment_status(
    db: Session,
    direction: PaymentDirection,
    payment_id: int,
    target: ApprovalStatus,
    *,
    actor_id: int | None,
    comment: str | None = None,
) -> models.Payment:
    """Submit (draft -> submitted) or reject (submitted -> rejected)."""

    actions = {
        ApprovalStatus.submitted_for_approval: HistoryAction.submitted_for_approval,
        ApprovalStatus.rejected: HistoryAction.rejected,
    }
    if target not in actions:
        raise ValidationError(
            f"Use the dedicated operation to move a payment to {approvals.status_label(target)}"
        )

    payment = get_payment(db, direction, payment_id)
    from_status = payment.status
    approvals.transition_status(db, payment, target, updates={"updated_by": actor_id})

    append_history(
        db,
        module=HISTORY_MODULES[direction],
        entity_id=payment.id,
        actor_id=actor_id,
        action=actions[target],
        details={"from": from_status, "to": target, "comment": comment},
    )
    logger.info(
        "payment_status_changed",
        extra={"payment_id": payment.id, "from": from_status.value, "to": target.value},
    )
    return payment


def approve_payment(
    db: Session,
    direction: PaymentDirection,
    payment_id: int,
    *,
    actor_id: int | None,
    comment: str | None = None,
    reconcile_date: date | None = None,
    reconcile_number: str | None = None,
) -> models.Payment:
    payment = get_payment(db, direction, payment_id)
    approvals.ensure_transition_allowed(payment, ApprovalStatus.approved)

    # Other payments may have consumed the obligations since this one was saved.
    validate_allocations(
        db,
        direction=direction,
        party_id=payment.party_id,
        allocations=[
            AllocationInput(alloc_type=a.alloc_type, reference_id=a.reference_id, amount=a.amount_bank)
            for a in payment.allocations
        ],
        fx_rate=float(payment.fx_rate),
        exclude_payment_id=payment.id,
    )

    journal = replace_journal(
        db,
        payment_journal_request(
            db,
            payment,
            actor_id=actor_id,
            reconcile_date=reconcile_date,
            reconcile_number=reconcile_number,
        ),
    )

    updates = approvals.approval_updates(payment, actor_id=actor_id)
    updates.update({"reconcile_date": reconcile_date, "reconcile_number": reconcile_number})
    approvals.transition_status(db, payment, ApprovalStatus.approved, updates=updates)

    recompute_many(db, _obligation_refs(payment))
    append_history(
        db,
        module=HISTORY_MODULES[direction],
        entity_id=payment.id,
        actor_id=actor_id,
        action=HistoryAction.approved,
        details={"comment": comment, "payment_number": payment.payment_number},
    )
    logger.info(
        "payment_approved",
        extra={
            "payment_id": payment.id,
            "payment_number": payment.payment_number,
            "journal_number": journal.journal_number,
        },
    )
    return payment


def request_payment_edit(
    db: Session,
    direction: PaymentDirection,
    payment_id: int,
    *,
    reason: str | None,
    actor_id: int | None,
) -> models.Payment:
    payment = get_payment(db, direction, payment_id)
    approvals.request_edit(db, payment, reason=reason, actor_id=actor_id)
    append_history(
        db,
        module=HISTORY_MODULES[direction],
        entity_id=payment.id,
        actor_id=actor_id,
        action=HistoryAction.edit_requested,
        details={"reason": payment.edit_request_reason},
    )
    logger.info("payment_edit_requested", extra={"payment_id": payment.id})
    return payment


def decide_payment_edit_request(
    db: Session,
    direction: PaymentDirection,
    payment_id: int,
    *,
    approve: bool,
    actor_id: int | None,
    reason: str | None = None,
) -> models.Payment:
    payment = get_payment(db, direction, payment_id)
    approvals.decide_edit_request(db, payment, approve=approve, actor_id=actor_id, reason=reason)

    if approve:
        action = HistoryAction.edit_request_approved
        details = {"comment": str(reason or "").strip() or "Edit request approved"}
    else:
        action = HistoryAction.edit_request_rejected
        details = {"reason": payment.edit_rejection_reason}
    append_history(
        db,
        module=HISTORY_MODULES[direction],
        entity_id=payment.id,
        actor_id=actor_id,
        action=action,
        details=details,
    )
    logger.info(
        "payment_edit_request_decided",
        extra={"payment_id": payment.id, "approved": bool(approve)},
    )
    return payment


def _journal_source_type(direction: PaymentDirection) -> models.JournalSourceType:
    if direction == PaymentDirection.outward:
        return models.JournalSourceType.outward_payment
    return models.JournalSourceType.inward_payment


def delete_payment(
    db: Session,
    direction: PaymentDirection,
    payment_id: int,
    *,
    actor_id: int | None,
) -> None:
    payment = get_payment(db, direction, payment_id)
    if payment.status != ApprovalStatus.draft:
        raise ValidationError(
            f"Only draft payments can be deleted (status is {approvals.status_label(payment.status)})"
        )

    refs = _obligation_refs(payment)
    payment.is_deleted = True
    payment.updated_by = actor_id
    # A draft reopened through an edit request still carries its earlier journal.
    soft_delete_journals(db, source_type=_journal_source_type(direction), source_id=payment.id)
    db.flush()

    recompute_many(db, refs)
    append_history(
        db,
        module=HISTORY_MODULES[direction],
        entity_id=payment.id,
        actor_id=actor_id,
        action=HistoryAction.deleted,
        details={"payment_number": payment.payment_number},
    )
    logger.info("payment_deleted", extra={"payment_id": payment.id})


def payment_history(db: Session, direction: PaymentDirection, payment_id: int) -> list[models.History]:
    payment = get_payment(db, direction, payment_id)
    return list_history(db, module=HISTORY_MODULES[direction], entity_id=payment.id)


def payment_journals(
    db: Session,
    direction: PaymentDirection,
    payment_id: int,
    *,
    include_deleted: bool = False,
) -> list[models.GlJournal]:
    payment = get_payment(db, direction, payment_id)
    return list_journals(
        db,
        source_type=_journal_source_type(direction),
        source_id=payment.id,
        include_deleted=include_deleted,
    )
