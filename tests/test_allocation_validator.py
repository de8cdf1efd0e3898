import pytest

from ledger_engine import models
from ledger_engine.core.errors import NotFoundError, ValidationError
from ledger_engine.models import AllocationType, PaymentDirection
from ledger_engine.services import payments
from ledger_engine.services.allocation_validator import (
    AllocationInput,
    exceeds_outstanding,
    validate_allocations,
)

from conftest import USD_RATE, tt_payment


def _bill_alloc(bill_id: int, amount: float) -> dict:
    return {"alloc_type": "bill", "reference_id": bill_id, "amount": amount}


def test_over_allocation_in_one_request_fails_and_persists_nothing(db_session, ledger):
    data = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[_bill_alloc(ledger.bill.id, 60.00), _bill_alloc(ledger.bill.id, 40.01)],
    )

    with pytest.raises(ValidationError) as exc:
        payments.create_payment(db_session, PaymentDirection.outward, data, actor_id=1)
    db_session.rollback()

    assert "exceeds outstanding balance" in exc.value.message
    assert exc.value.details["outstanding"] == 100.0
    assert db_session.query(models.PaymentAllocation).count() == 0
    assert db_session.query(models.Payment).count() == 0


def test_exact_outstanding_is_accepted(db_session, ledger):
    data = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[_bill_alloc(ledger.bill.id, 60.00), _bill_alloc(ledger.bill.id, 40.00)],
    )
    payment = payments.create_payment(db_session, PaymentDirection.outward, data, actor_id=1)
    db_session.commit()

    assert len(payment.allocations) == 2
    assert payment.total_amount_bank == pytest.approx(100.0)


def test_sub_tolerance_noise_passes():
    assert exceeds_outstanding(100.004, 100.0) is False
    assert exceeds_outstanding(0.1 + 0.2, 0.3) is False
    assert exceeds_outstanding(100.01, 100.0) is True
    assert exceeds_outstanding(99.0, 100.0) is False


def test_other_payments_reduce_outstanding(db_session, ledger):
    first = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[_bill_alloc(ledger.bill.id, 70.0)],
    )
    payments.create_payment(db_session, PaymentDirection.outward, first, actor_id=1)
    db_session.commit()

    second = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[_bill_alloc(ledger.bill.id, 30.5)],
        tt_ref_no="TT-REF-2",
    )
    with pytest.raises(ValidationError):
        payments.create_payment(db_session, PaymentDirection.outward, second, actor_id=1)


def test_edit_excludes_own_prior_allocations(db_session, ledger):
    data = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[_bill_alloc(ledger.bill.id, 100.0)],
    )
    payment = payments.create_payment(db_session, PaymentDirection.outward, data, actor_id=1)
    db_session.commit()

    result = validate_allocations(
        db_session,
        direction=PaymentDirection.outward,
        party_id=ledger.supplier.id,
        allocations=[AllocationInput(AllocationType.bill, ledger.bill.id, 95.0)],
        fx_rate=1.0,
        exclude_payment_id=payment.id,
    )
    assert result[0].amount_base == pytest.approx(95.0)

    with pytest.raises(ValidationError):
        validate_allocations(
            db_session,
            direction=PaymentDirection.outward,
            party_id=ledger.supplier.id,
            allocations=[AllocationInput(AllocationType.bill, ledger.bill.id, 95.0)],
            fx_rate=1.0,
        )


def test_proposed_amount_is_converted_at_payment_rate(db_session, ledger):
    # 30 USD at 3.6725 is 110.18 AED against a 100.00 AED bill.
    with pytest.raises(ValidationError):
        validate_allocations(
            db_session,
            direction=PaymentDirection.outward,
            party_id=ledger.supplier.id,
            allocations=[AllocationInput(AllocationType.bill, ledger.bill.id, 30.0)],
            fx_rate=USD_RATE,
        )

    result = validate_allocations(
        db_session,
        direction=PaymentDirection.outward,
        party_id=ledger.supplier.id,
        allocations=[AllocationInput(AllocationType.bill, ledger.bill.id, 20.0)],
        fx_rate=USD_RATE,
    )
    assert result[0].amount_bank == pytest.approx(20.0)
    assert result[0].amount_base == pytest.approx(20.0 * USD_RATE)


def test_obligation_must_belong_to_party(db_session, ledger):
    with pytest.raises(ValidationError) as exc:
        validate_allocations(
            db_session,
            direction=PaymentDirection.outward,
            party_id=ledger.supplier.id,
            allocations=[AllocationInput(AllocationType.bill, ledger.other_bill.id, 10.0)],
            fx_rate=1.0,
        )
    assert "does not belong" in exc.value.message


def test_allocation_type_must_match_direction(db_session, ledger):
    with pytest.raises(ValidationError):
        validate_allocations(
            db_session,
            direction=PaymentDirection.outward,
            party_id=ledger.supplier.id,
            allocations=[AllocationInput(AllocationType.invoice, ledger.invoice.id, 10.0)],
            fx_rate=1.0,
        )


def test_missing_obligation_is_not_found(db_session, ledger):
    with pytest.raises(NotFoundError):
        validate_allocations(
            db_session,
            direction=PaymentDirection.inward,
            party_id=ledger.customer.id,
            allocations=[AllocationInput(AllocationType.invoice, 9999, 10.0)],
            fx_rate=1.0,
        )


def test_shape_checks(db_session, ledger):
    with pytest.raises(ValidationError):
        validate_allocations(
            db_session,
            direction=PaymentDirection.outward,
            party_id=ledger.supplier.id,
            allocations=[],
            fx_rate=1.0,
        )
    with pytest.raises(ValidationError):
        validate_allocations(
            db_session,
            direction=PaymentDirection.outward,
            party_id=ledger.supplier.id,
            allocations=[AllocationInput(AllocationType.bill, ledger.bill.id, 0.0)],
            fx_rate=1.0,
        )
    with pytest.raises(ValidationError):
        validate_allocations(
            db_session,
            direction=PaymentDirection.outward,
            party_id=ledger.supplier.id,
            allocations=[AllocationInput(AllocationType.bill, None, 5.0)],
            fx_rate=1.0,
        )


def test_advances_are_validated_against_purchase_orders(db_session, ledger):
    result = validate_allocations(
        db_session,
        direction=PaymentDirection.outward,
        party_id=ledger.supplier.id,
        allocations=[AllocationInput(AllocationType.advance, ledger.po.id, 500.0)],
        fx_rate=1.0,
    )
    assert result[0].obligation_ref == (models.ObligationKind.purchase_order, ledger.po.id)

    with pytest.raises(ValidationError):
        validate_allocations(
            db_session,
            direction=PaymentDirection.outward,
            party_id=ledger.supplier.id,
            allocations=[AllocationInput(AllocationType.advance, ledger.po.id, 500.02)],
            fx_rate=1.0,
        )
