"""Approval and edit-request state machine shared by payments and fund transfers.

Both record types carry the same ``status`` / ``edit_request_*`` columns, so
every helper here takes the mapped class and the loaded row.

Status writes are conditional updates:

    UPDATE <table>
    SET status = :to_status, ...
    WHERE id = :id AND status IN (:allowed_from)

A zero rowcount means another request moved the record first; the caller's
transaction is then aborted with a ``ValidationError``. Callers control
commit/rollback.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy.orm import Session

from ledger_engine.core.errors import ValidationError
from ledger_engine.models import ApprovalStatus, EditRequestStatus


@dataclass(frozen=True)
class TransitionResult:
    updated: bool
    rowcount: int


# to_status -> statuses it may be entered from (edits are handled by EDITABLE_STATUSES)
ALLOWED_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.submitted_for_approval: frozenset({ApprovalStatus.draft}),
    ApprovalStatus.approved: frozenset({ApprovalStatus.submitted_for_approval}),
    ApprovalStatus.rejected: frozenset({ApprovalStatus.submitted_for_approval}),
}

EDITABLE_STATUSES = frozenset(
    {ApprovalStatus.draft, ApprovalStatus.submitted_for_approval, ApprovalStatus.rejected}
)

_STATUS_LABELS = {
    ApprovalStatus.draft: "Draft",
    ApprovalStatus.submitted_for_approval: "Submitted for Approval",
    ApprovalStatus.approved: "Approved",
    ApprovalStatus.rejected: "Rejected",
}


def status_label(status: ApprovalStatus) -> str:
    return _STATUS_LABELS[status]


def _utc_now() -> datetime:
    return datetime.utcnow()


def atomic_transition_status(
    *,
    db: Session,
    model,
    record_id: int,
    to_status: ApprovalStatus,
    allowed_from: Iterable[ApprovalStatus],
    updates: dict[str, Any] | None = None,
) -> TransitionResult:
    update_values: dict[str, Any] = {"status": to_status}
    if updates:
        update_values.update(updates)

    rowcount = (
        db.query(model)
        .filter(model.id == int(record_id))
        .filter(model.status.in_(set(allowed_from)))
        .update(update_values, synchronize_session=False)
    )
    return TransitionResult(updated=rowcount > 0, rowcount=int(rowcount or 0))


def ensure_transition_allowed(record, to_status: ApprovalStatus) -> frozenset[ApprovalStatus]:
    allowed_from = ALLOWED_TRANSITIONS.get(to_status)
    if not allowed_from or record.status not in allowed_from:
        raise ValidationError(
            f"Cannot change status from {status_label(record.status)} to {status_label(to_status)}",
            details={"from": record.status.value, "to": to_status.value},
        )
    return allowed_from


def transition_status(
    db: Session,
    record,
    to_status: ApprovalStatus,
    *,
    updates: dict[str, Any] | None = None,
) -> None:
    """Move ``record`` to ``to_status`` if the transition table allows it."""

    allowed_from = ensure_transition_allowed(record, to_status)
    db.flush()
    result = atomic_transition_status(
        db=db,
        model=type(record),
        record_id=record.id,
        to_status=to_status,
        allowed_from=allowed_from,
        updates=updates,
    )
    if not result.updated:
        raise ValidationError("Record status changed concurrently; reload and retry")
    db.refresh(record)


def ensure_editable(record) -> None:
    if record.status in EDITABLE_STATUSES:
        return
    if record.edit_request_status == EditRequestStatus.approved:
        return
    raise ValidationError(
        f"Cannot edit a record in status {status_label(record.status)}; request an edit first",
        details={"status": record.status.value},
    )


def mark_edited(record, *, actor_id: int | None) -> None:
    """Any saved edit returns the record to Draft and closes an approved edit request."""

    record.status = ApprovalStatus.draft
    record.updated_by = actor_id
    if record.edit_request_status == EditRequestStatus.approved:
        record.edit_request_status = EditRequestStatus.none


def approval_updates(record, *, actor_id: int | None, now: datetime | None = None) -> dict[str, Any]:
    updates: dict[str, Any] = {"approved_by": actor_id, "approved_at": now or _utc_now()}
    if record.edit_request_status == EditRequestStatus.approved:
        updates["edit_request_status"] = EditRequestStatus.none
    return updates


def request_edit(
    db: Session,
    record,
    *,
    reason: str | None,
    actor_id: int | None,
    now: datetime | None = None,
) -> None:
    if record.status != ApprovalStatus.approved:
        raise ValidationError("Edit requests can only be raised for approved records")
    text = str(reason or "").strip()
    if not text:
        raise ValidationError("A reason is required to request an edit")
    if record.edit_request_status == EditRequestStatus.pending:
        raise ValidationError("An edit request is already pending for this record")

    model = type(record)
    db.flush()
    rowcount = (
        db.query(model)
        .filter(model.id == record.id)
        .filter(model.status == ApprovalStatus.approved)
        .filter(model.edit_request_status != EditRequestStatus.pending)
        .update(
            {
                "edit_request_status": EditRequestStatus.pending,
                "edit_request_reason": text,
                "edit_requested_by": actor_id,
                "edit_requested_at": now or _utc_now(),
                "edit_rejection_reason": None,
            },
            synchronize_session=False,
        )
    )
    if not rowcount:
        raise ValidationError("Record changed concurrently; reload and retry")
    db.refresh(record)


def decide_edit_request(
    db: Session,
    record,
    *,
    approve: bool,
    actor_id: int | None,
    reason: str | None = None,
    now: datetime | None = None,
) -> None:
    """Approve (record reopens as Draft) or reject (record stays Approved)."""

    if record.edit_request_status != EditRequestStatus.pending:
        raise ValidationError("There is no pending edit request for this record")

    now = now or _utc_now()
    if approve:
        values: dict[str, Any] = {
            "edit_request_status": EditRequestStatus.approved,
            "edit_approved_by": actor_id,
            "edit_approved_at": now,
            "status": ApprovalStatus.draft,
        }
    else:
        values = {
            "edit_request_status": EditRequestStatus.rejected,
            "edit_rejection_reason": str(reason or "").strip() or "Edit request rejected",
        }

    model = type(record)
    db.flush()
    rowcount = (
        db.query(model)
        .filter(model.id == record.id)
        .filter(model.edit_request_status == EditRequestStatus.pending)
        .update(values, synchronize_session=False)
    )
    if not rowcount:
        raise ValidationError("Edit request changed concurrently; reload and retry")
    db.refresh(record)
