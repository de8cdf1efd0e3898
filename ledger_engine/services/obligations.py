from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from ledger_engine import models
from ledger_engine.core.errors import NotFoundError, ValidationError
from ledger_engine.models import AllocationType, ObligationKind, PaymentDirection


@dataclass(frozen=True)
class ObligationSpec:
    kind: ObligationKind
    model: Any
    direction: PaymentDirection
    alloc_type: AllocationType
    party_column: str
    number_column: str
    label: str


OBLIGATIONS: dict[ObligationKind, ObligationSpec] = {
    ObligationKind.bill: ObligationSpec(
        kind=ObligationKind.bill,
        model=models.Bill,
        direction=PaymentDirection.outward,
        alloc_type=AllocationType.bill,
        party_column="supplier_id",
        number_column="bill_number",
        label="Bill",
    ),
    ObligationKind.purchase_order: ObligationSpec(
        kind=ObligationKind.purchase_order,
        model=models.PurchaseOrder,
        direction=PaymentDirection.outward,
        alloc_type=AllocationType.advance,
        party_column="supplier_id",
        number_column="po_number",
        label="Purchase Order",
    ),
    ObligationKind.invoice: ObligationSpec(
        kind=ObligationKind.invoice,
        model=models.Invoice,
        direction=PaymentDirection.inward,
        alloc_type=AllocationType.invoice,
        party_column="customer_id",
        number_column="invoice_number",
        label="Invoice",
    ),
    ObligationKind.proforma: ObligationSpec(
        kind=ObligationKind.proforma,
        model=models.Proforma,
        direction=PaymentDirection.inward,
        alloc_type=AllocationType.advance,
        party_column="customer_id",
        number_column="proforma_number",
        label="Proforma",
    ),
}

_BY_DIRECTION_AND_TYPE = {(s.direction, s.alloc_type): s for s in OBLIGATIONS.values()}


def spec_for(direction: PaymentDirection, alloc_type: AllocationType) -> ObligationSpec:
    entry = _BY_DIRECTION_AND_TYPE.get((direction, alloc_type))
    if entry is None:
        raise ValidationError(
            f"Allocation type '{alloc_type.value}' is not allowed for {direction.value} payments"
        )
    return entry


def allowed_alloc_types(direction: PaymentDirection) -> list[AllocationType]:
    return [s.alloc_type for s in OBLIGATIONS.values() if s.direction == direction]


def load_obligation(db: Session, entry: ObligationSpec, obligation_id: int):
    row = db.get(entry.model, int(obligation_id))
    if row is None:
        raise NotFoundError(f"{entry.label} {obligation_id} not found")
    return row


def obligation_number(entry: ObligationSpec, obligation) -> str:
    return str(getattr(obligation, entry.number_column, None) or f"{entry.label} #{obligation.id}")


def ensure_owned_by(entry: ObligationSpec, obligation, party_id: int) -> None:
    owner = getattr(obligation, entry.party_column)
    if owner is None or int(owner) != int(party_id):
        raise ValidationError(
            f"{entry.label} {obligation_number(entry, obligation)} does not belong to the selected party",
            details={"obligation_id": obligation.id, "party_id": int(party_id)},
        )
