from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from sqlalchemy.orm import Session

from ledger_engine.config import settings
from ledger_engine.core.errors import ValidationError
from ledger_engine.models import AllocationType, ObligationKind, PaymentDirection
from ledger_engine.services.obligations import (
    allowed_alloc_types,
    ensure_owned_by,
    load_obligation,
    obligation_number,
    spec_for,
)
from ledger_engine.services.open_balance import allocated_amount


@dataclass(frozen=True)
class AllocationInput:
    alloc_type: AllocationType
    reference_id: int | None
    amount: float


@dataclass(frozen=True)
class ValidatedAllocation:
    kind: ObligationKind
    alloc_type: AllocationType
    reference_id: int
    amount_bank: float
    amount_base: float

    @property
    def obligation_ref(self) -> tuple[ObligationKind, int]:
        return (self.kind, self.reference_id)


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def exceeds_outstanding(proposed: float, outstanding: float) -> bool:
    """True when ``proposed`` over-allocates ``outstanding``.

    Both sides are compared in whole cents; anything below the allocation
    tolerance is float or rounding noise and passes.
    """

    excess = _money(proposed) - _money(outstanding)
    return excess > 0 and excess >= Decimal(str(settings.allocation_epsilon))


def _check_shape(direction: PaymentDirection, allocations: Sequence[AllocationInput]) -> None:
    if not allocations:
        raise ValidationError("At least one allocation is required")

    allowed = allowed_alloc_types(direction)
    for alloc in allocations:
        if alloc.alloc_type not in allowed:
            raise ValidationError(
                f"Allocation type '{alloc.alloc_type.value}' is not allowed for {direction.value} payments"
            )
        if not alloc.reference_id:
            raise ValidationError(f"Reference id is required for '{alloc.alloc_type.value}' allocations")
        if alloc.amount is None or float(alloc.amount) <= 0:
            raise ValidationError("Allocation amount must be greater than zero")


def validate_allocations(
    db: Session,
    *,
    direction: PaymentDirection,
    party_id: int,
    allocations: Iterable[AllocationInput],
    fx_rate: float,
    exclude_payment_id: int | None = None,
) -> list[ValidatedAllocation]:
    """Validate a full allocation set against outstanding obligation balances.

    Nothing is written. Either every allocation passes and the converted
    rows are returned, or the first failure is raised.
    """

    allocations = list(allocations)
    _check_shape(direction, allocations)

    rate = float(fx_rate)
    grouped: dict[tuple[ObligationKind, int], list[AllocationInput]] = {}
    for alloc in allocations:
        entry = spec_for(direction, alloc.alloc_type)
        grouped.setdefault((entry.kind, int(alloc.reference_id)), []).append(alloc)

    for (kind, obligation_id), items in grouped.items():
        entry = spec_for(direction, items[0].alloc_type)
        obligation = load_obligation(db, entry, obligation_id)
        ensure_owned_by(entry, obligation, party_id)

        already = allocated_amount(db, entry, obligation, exclude_payment_id=exclude_payment_id)
        outstanding = float(obligation.total or 0.0) - already
        proposed = sum(float(a.amount) for a in items) * rate

        if exceeds_outstanding(proposed, outstanding):
            raise ValidationError(
                f"Allocation amount ({proposed:.2f}) exceeds outstanding balance ({outstanding:.2f}) "
                f"for {entry.label.lower()} {obligation_number(entry, obligation)}",
                details={
                    "obligation_kind": kind.value,
                    "obligation_id": obligation_id,
                    "outstanding": round(outstanding, 2),
                    "proposed": round(proposed, 2),
                },
            )

    out: list[ValidatedAllocation] = []
    for alloc in allocations:
        entry = spec_for(direction, alloc.alloc_type)
        amount = float(alloc.amount)
        out.append(
            ValidatedAllocation(
                kind=entry.kind,
                alloc_type=alloc.alloc_type,
                reference_id=int(alloc.reference_id),
                amount_bank=amount,
                amount_base=amount * rate,
            )
        )
    return out
