from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from ledger_engine import models
from ledger_engine.config import settings
from ledger_engine.core.errors import NotFoundError, ValidationError
from ledger_engine.models import ApprovalStatus, HistoryAction, HistoryModule, JournalSourceType
from ledger_engine.schemas.fund_transfers import FundTransferCreate, FundTransferUpdate
from ledger_engine.services import approvals
from ledger_engine.services.currency_resolver import Unresolved, resolve_account_currency
from ledger_engine.services.document_numbering import next_transfer_number
from ledger_engine.services.exchange_rates import require_rate
from ledger_engine.services.gl_journal import list_journals, replace_journal, transfer_journal_request
from ledger_engine.services.history import append_history, list_history

logger = logging.getLogger("ledger_engine")

MODULE = HistoryModule.fund_transfer

# Fields a locked (approved) transfer still accepts.
_FREE_TEXT_FIELDS = ("reference", "notes")

_AMOUNT_FIELDS = ("amount_from_currency", "amount_base", "amount_to_currency")
_RATE_FIELDS = ("rate_from_to_base", "rate_to_to_base")
_TRACKED_FIELDS = (
    "from_bank_account_id",
    "to_bank_account_id",
    "transfer_date",
    "from_currency_code",
    "to_currency_code",
    "rate_overridden",
    *_AMOUNT_FIELDS,
    *_RATE_FIELDS,
    *_FREE_TEXT_FIELDS,
)


@dataclass(frozen=True)
class _Side:
    account: models.BankAccount
    currency_code: str
    currency_id: int | None
    is_base: bool


@dataclass(frozen=True)
class TransferAmounts:
    rate_from_to_base: float
    rate_to_to_base: float
    amount_base: float
    amount_to_currency: float


def compute_amounts(amount_from_currency: float, rate_from: float, rate_to: float) -> TransferAmounts:
    """``amount_base = amount_from * rate_from``; ``amount_to = amount_base / rate_to``."""

    if rate_from <= 0 or rate_to <= 0:
        raise ValidationError("Exchange rates must be greater than zero")
    amount_base = float(amount_from_currency) * float(rate_from)
    return TransferAmounts(
        rate_from_to_base=float(rate_from),
        rate_to_to_base=float(rate_to),
        amount_base=amount_base,
        amount_to_currency=amount_base / float(rate_to),
    )


def _side(db: Session, account_id: int, label: str) -> _Side:
    account = db.get(models.BankAccount, int(account_id))
    if account is None:
        raise NotFoundError(f"{label} bank account {account_id} not found")
    resolution = resolve_account_currency(db, account)
    if isinstance(resolution, Unresolved):
        raise ValidationError(f"Could not resolve currency for {label.lower()} account: {resolution.reason}")
    return _Side(
        account=account,
        currency_code=resolution.code,
        currency_id=resolution.currency_id,
        is_base=resolution.is_base,
    )


def _rate_for(db: Session, side: _Side, on_date: date, supplied: float | None, overridden: bool) -> float:
    # A base-currency side is pinned to 1.0 even when the rates are overridden.
    if side.is_base:
        return 1.0
    if overridden and supplied:
        return float(supplied)
    return require_rate(db, side.account.id, on_date, currency_code=side.currency_code)


def _check_accounts(from_id: int | None, to_id: int | None) -> None:
    if not from_id or not to_id:
        raise ValidationError("From and To bank accounts are required")
    if int(from_id) == int(to_id):
        raise ValidationError("From and To accounts cannot be the same")


def _check_amount(amount: float | None) -> None:
    if amount is None or float(amount) <= 0:
        raise ValidationError("Transfer amount must be greater than zero")


def _snapshot(transfer: models.FundTransfer) -> dict[str, Any]:
    return {name: getattr(transfer, name) for name in _TRACKED_FIELDS}


def _field_changes(before: dict[str, Any], after: dict[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for name in _TRACKED_FIELDS:
        old, new = before.get(name), after.get(name)
        if name in _RATE_FIELDS or name in _AMOUNT_FIELDS:
            tolerance = settings.rate_epsilon if name in _RATE_FIELDS else settings.allocation_epsilon
            if abs(float(old or 0.0) - float(new or 0.0)) <= tolerance:
                continue
        elif name in _FREE_TEXT_FIELDS:
            if (old or "") == (new or ""):
                continue
        elif old == new:
            continue
        changes[name] = {"from": old, "to": new}
    return changes


def get_transfer(db: Session, transfer_id: int) -> models.FundTransfer:
    transfer = db.get(models.FundTransfer, int(transfer_id))
    if transfer is None:
        raise NotFoundError(f"Fund transfer {transfer_id} not found")
    return transfer


def create_transfer(
    db: Session, data: FundTransferCreate, *, actor_id: int | None
) -> models.FundTransfer:
    _check_accounts(data.from_bank_account_id, data.to_bank_account_id)
    if data.transfer_date is None:
        raise ValidationError("Transfer date is required")
    _check_amount(data.amount_from_currency)

    from_side = _side(db, data.from_bank_account_id, "From")
    to_side = _side(db, data.to_bank_account_id, "To")
    overridden = bool(data.rate_overridden)
    amounts = compute_amounts(
        data.amount_from_currency,
        _rate_for(db, from_side, data.transfer_date, data.rate_from_to_base, overridden),
        _rate_for(db, to_side, data.transfer_date, data.rate_to_to_base, overridden),
    )

    transfer = models.FundTransfer(
        transfer_no=next_transfer_number(db),
        from_bank_account=from_side.account,
        to_bank_account=to_side.account,
        transfer_date=data.transfer_date,
        amount_from_currency=float(data.amount_from_currency),
        from_currency_code=from_side.currency_code,
        from_currency_id=from_side.currency_id,
        to_currency_code=to_side.currency_code,
        rate_from_to_base=amounts.rate_from_to_base,
        rate_to_to_base=amounts.rate_to_to_base,
        amount_base=amounts.amount_base,
        amount_to_currency=amounts.amount_to_currency,
        rate_overridden=overridden,
        reference=data.reference,
        notes=data.notes,
        status=ApprovalStatus.draft,
        created_by=actor_id,
    )
    db.add(transfer)
    db.flush()

    append_history(
        db,
        module=MODULE,
        entity_id=transfer.id,
        actor_id=actor_id,
        action=HistoryAction.created,
        details={"transfer_no": transfer.transfer_no},
    )
    logger.info(
        "fund_transfer_created",
        extra={
            "transfer_id": transfer.id,
            "transfer_no": transfer.transfer_no,
            "amount_base": amounts.amount_base,
        },
    )
    return transfer


def _update_free_text(transfer: models.FundTransfer, data: FundTransferUpdate, provided: set[str]) -> None:
    locked = provided - set(_FREE_TEXT_FIELDS)
    if locked:
        raise ValidationError(
            "Only reference and notes can be updated for this transfer status",
            details={"fields": sorted(locked)},
        )
    for name in _FREE_TEXT_FIELDS:
        if name in provided:
            setattr(transfer, name, getattr(data, name))


def _update_all(
    db: Session, transfer: models.FundTransfer, data: FundTransferUpdate, provided: set[str]
) -> None:
    def pick(name: str):
        return getattr(data, name) if name in provided else getattr(transfer, name)

    from_id = pick("from_bank_account_id")
    to_id = pick("to_bank_account_id")
    _check_accounts(from_id, to_id)
    transfer_date = pick("transfer_date")
    if transfer_date is None:
        raise ValidationError("Transfer date is required")
    amount = pick("amount_from_currency")
    _check_amount(amount)

    overridden = bool(pick("rate_overridden"))
    from_side = _side(db, from_id, "From")
    to_side = _side(db, to_id, "To")
    # Overridden rates are kept verbatim unless new ones are supplied.
    amounts = compute_amounts(
        amount,
        _rate_for(db, from_side, transfer_date, pick("rate_from_to_base"), overridden),
        _rate_for(db, to_side, transfer_date, pick("rate_to_to_base"), overridden),
    )

    transfer.from_bank_account = from_side.account
    transfer.to_bank_account = to_side.account
    transfer.transfer_date = transfer_date
    transfer.amount_from_currency = float(amount)
    transfer.from_currency_code = from_side.currency_code
    transfer.from_currency_id = from_side.currency_id
    transfer.to_currency_code = to_side.currency_code
    transfer.rate_from_to_base = amounts.rate_from_to_base
    transfer.rate_to_to_base = amounts.rate_to_to_base
    transfer.amount_base = amounts.amount_base
    transfer.amount_to_currency = amounts.amount_to_currency
    transfer.rate_overridden = overridden
    for name in _FREE_TEXT_FIELDS:
        if name in provided:
            setattr(transfer, name, getattr(data, name))


def update_transfer(
    db: Session, transfer_id: int, data: FundTransferUpdate, *, actor_id: int | None
) -> models.FundTransfer:
    """Partial update.

    Draft, submitted and rejected transfers accept every field and return to
    Draft. Any other status accepts only reference and notes.
    """

    transfer = get_transfer(db, transfer_id)
    provided = set(data.model_fields_set)
    before = _snapshot(transfer)
    from_status = transfer.status

    if transfer.status in approvals.EDITABLE_STATUSES:
        _update_all(db, transfer, data, provided)
        approvals.mark_edited(transfer, actor_id=actor_id)
    else:
        _update_free_text(transfer, data, provided)
        transfer.updated_by = actor_id
    db.flush()

    changes = _field_changes(before, _snapshot(transfer))
    if changes:
        append_history(
            db,
            module=MODULE,
            entity_id=transfer.id,
            actor_id=actor_id,
            action=HistoryAction.updated,
            details={"changes": changes},
        )
    if from_status != transfer.status:
        append_history(
            db,
            module=MODULE,
            entity_id=transfer.id,
            actor_id=actor_id,
            action=HistoryAction.status_changed,
            details={"from": from_status, "to": transfer.status},
        )
    logger.info(
        "fund_transfer_updated",
        extra={"transfer_id": transfer.id, "changed_fields": sorted(changes)},
    )
    return transfer


def _transition(
    db: Session,
    transfer_id: int,
    to_status: ApprovalStatus,
    action: HistoryAction,
    *,
    actor_id: int | None,
    comment: str | None,
) -> models.FundTransfer:
    transfer = get_transfer(db, transfer_id)
    from_status = transfer.status
    approvals.transition_status(db, transfer, to_status, updates={"updated_by": actor_id})
    append_history(
        db,
        module=MODULE,
        entity_id=transfer.id,
        actor_id=actor_id,
        action=action,
        details={"from": from_status, "to": to_status, "comment": comment},
    )
    logger.info(
        "fund_transfer_status_changed",
        extra={"transfer_id": transfer.id, "from": from_status.value, "to": to_status.value},
    )
    return transfer


def submit_transfer(
    db: Session, transfer_id: int, *, actor_id: int | None, comment: str | None = None
) -> models.FundTransfer:
    return _transition(
        db,
        transfer_id,
        ApprovalStatus.submitted_for_approval,
        HistoryAction.submitted_for_approval,
        actor_id=actor_id,
        comment=comment,
    )


def reject_transfer(
    db: Session, transfer_id: int, *, actor_id: int | None, comment: str | None = None
) -> models.FundTransfer:
    return _transition(
        db,
        transfer_id,
        ApprovalStatus.rejected,
        HistoryAction.rejected,
        actor_id=actor_id,
        comment=comment,
    )


def approve_transfer(
    db: Session, transfer_id: int, *, actor_id: int | None, comment: str | None = None
) -> models.FundTransfer:
    transfer = get_transfer(db, transfer_id)
    approvals.ensure_transition_allowed(transfer, ApprovalStatus.approved)

    from_side = _side(db, transfer.from_bank_account_id, "From")
    journal = replace_journal(
        db,
        transfer_journal_request(transfer, from_is_base=from_side.is_base, actor_id=actor_id),
    )
    approvals.transition_status(
        db,
        transfer,
        ApprovalStatus.approved,
        updates=approvals.approval_updates(transfer, actor_id=actor_id),
    )

    append_history(
        db,
        module=MODULE,
        entity_id=transfer.id,
        actor_id=actor_id,
        action=HistoryAction.approved,
        details={"comment": comment, "transfer_no": transfer.transfer_no},
    )
    logger.info(
        "fund_transfer_approved",
        extra={
            "transfer_id": transfer.id,
            "transfer_no": transfer.transfer_no,
            "journal_number": journal.journal_number,
        },
    )
    return transfer


def request_transfer_edit(
    db: Session, transfer_id: int, *, reason: str | None, actor_id: int | None
) -> models.FundTransfer:
    transfer = get_transfer(db, transfer_id)
    approvals.request_edit(db, transfer, reason=reason, actor_id=actor_id)
    append_history(
        db,
        module=MODULE,
        entity_id=transfer.id,
        actor_id=actor_id,
        action=HistoryAction.edit_requested,
        details={"reason": transfer.edit_request_reason},
    )
    return transfer


def decide_transfer_edit_request(
    db: Session,
    transfer_id: int,
    *,
    approve: bool,
    actor_id: int | None,
    reason: str | None = None,
) -> models.FundTransfer:
    transfer = get_transfer(db, transfer_id)
    approvals.decide_edit_request(db, transfer, approve=approve, actor_id=actor_id, reason=reason)
    if approve:
        action = HistoryAction.edit_request_approved
        details = {"comment": str(reason or "").strip() or "Edit request approved"}
    else:
        action = HistoryAction.edit_request_rejected
        details = {"reason": transfer.edit_rejection_reason}
    append_history(
        db,
        module=MODULE,
        entity_id=transfer.id,
        actor_id=actor_id,
        action=action,
        details=details,
    )
    logger.info(
        "fund_transfer_edit_request_decided",
        extra={"transfer_id": transfer.id, "approved": bool(approve)},
    )
    return transfer


def transfer_history(db: Session, transfer_id: int) -> list[models.History]:
    transfer = get_transfer(db, transfer_id)
    return list_history(db, module=MODULE, entity_id=transfer.id)


def transfer_journals(
    db: Session, transfer_id: int, *, include_deleted: bool = False
) -> list[models.GlJournal]:
    transfer = get_transfer(db, transfer_id)
    return list_journals(
        db,
        source_type=JournalSourceType.fund_transfer,
        source_id=transfer.id,
        include_deleted=include_deleted,
    )
