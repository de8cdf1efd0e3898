from datetime import date

import pytest

from ledger_engine import models
from ledger_engine.core.errors import ValidationError
from ledger_engine.models import ApprovalStatus, PaymentDirection
from ledger_engine.schemas import FundTransferCreate
from ledger_engine.services import approvals, fund_transfers, payments

from conftest import submit_and_approve, tt_payment

OUT = PaymentDirection.outward


def _draft_payment(db, ledger):
    payment = payments.create_payment(
        db,
        OUT,
        tt_payment(
            party_id=ledger.supplier.id,
            bank_account_id=ledger.aed_bank.id,
            allocations=[{"alloc_type": "bill", "reference_id": ledger.bill.id, "amount": 10.0}],
        ),
        actor_id=1,
    )
    db.commit()
    return payment


def _draft_transfer(db, ledger):
    transfer = fund_transfers.create_transfer(
        db,
        FundTransferCreate(
            from_bank_account_id=ledger.aed_bank.id,
            to_bank_account_id=ledger.usd_bank.id,
            transfer_date=date(2026, 3, 15),
            amount_from_currency=100.0,
        ),
        actor_id=1,
    )
    db.commit()
    return transfer


def test_draft_payment_cannot_be_approved_directly(db_session, ledger):
    payment = _draft_payment(db_session, ledger)

    with pytest.raises(ValidationError) as exc:
        payments.approve_payment(db_session, OUT, payment.id, actor_id=2)
    assert exc.value.message == "Cannot change status from Draft to Approved"
    db_session.rollback()

    assert db_session.query(models.GlJournal).count() == 0


def test_draft_payment_cannot_be_rejected(db_session, ledger):
    payment = _draft_payment(db_session, ledger)
    with pytest.raises(ValidationError):
        payments.change_payment_status(db_session, OUT, payment.id, ApprovalStatus.rejected, actor_id=2)


def test_status_endpoint_does_not_approve_or_reset(db_session, ledger):
    payment = _draft_payment(db_session, ledger)
    for target in (ApprovalStatus.approved, ApprovalStatus.draft):
        with pytest.raises(ValidationError):
            payments.change_payment_status(db_session, OUT, payment.id, target, actor_id=2)


def test_approved_payment_cannot_be_resubmitted_or_rejected(db_session, ledger):
    payment = _draft_payment(db_session, ledger)
    submit_and_approve(db_session, OUT, payment.id)

    with pytest.raises(ValidationError):
        payments.change_payment_status(
            db_session, OUT, payment.id, ApprovalStatus.submitted_for_approval, actor_id=1
        )
    with pytest.raises(ValidationError):
        payments.change_payment_status(db_session, OUT, payment.id, ApprovalStatus.rejected, actor_id=1)
    with pytest.raises(ValidationError):
        payments.approve_payment(db_session, OUT, payment.id, actor_id=2)


def test_rejected_payment_must_be_edited_before_approval(db_session, ledger):
    payment = _draft_payment(db_session, ledger)
    payments.change_payment_status(
        db_session, OUT, payment.id, ApprovalStatus.submitted_for_approval, actor_id=1
    )
    payments.change_payment_status(db_session, OUT, payment.id, ApprovalStatus.rejected, actor_id=2)
    db_session.commit()

    with pytest.raises(ValidationError):
        payments.approve_payment(db_session, OUT, payment.id, actor_id=2)
    with pytest.raises(ValidationError):
        payments.change_payment_status(
            db_session, OUT, payment.id, ApprovalStatus.submitted_for_approval, actor_id=1
        )


def test_transfer_transitions_follow_the_same_table(db_session, ledger):
    transfer = _draft_transfer(db_session, ledger)

    with pytest.raises(ValidationError):
        fund_transfers.approve_transfer(db_session, transfer.id, actor_id=2)
    with pytest.raises(ValidationError):
        fund_transfers.reject_transfer(db_session, transfer.id, actor_id=2)

    fund_transfers.submit_transfer(db_session, transfer.id, actor_id=1)
    fund_transfers.reject_transfer(db_session, transfer.id, actor_id=2, comment="no")
    db_session.commit()
    assert transfer.status == ApprovalStatus.rejected

    with pytest.raises(ValidationError):
        fund_transfers.approve_transfer(db_session, transfer.id, actor_id=2)


def test_conditional_update_detects_concurrent_change(db_session, ledger):
    payment = _draft_payment(db_session, ledger)
    payments.change_payment_status(
        db_session, OUT, payment.id, ApprovalStatus.submitted_for_approval, actor_id=1
    )
    db_session.commit()
    payment = payments.get_payment(db_session, OUT, payment.id)
    assert payment.status == ApprovalStatus.submitted_for_approval

    # Another request approves the row behind this session's back.
    db_session.query(models.Payment).filter(models.Payment.id == payment.id).update(
        {"status": ApprovalStatus.approved}, synchronize_session=False
    )

    with pytest.raises(ValidationError) as exc:
        approvals.transition_status(db_session, payment, ApprovalStatus.rejected)
    assert "concurrently" in exc.value.message


def test_atomic_transition_reports_rowcount(db_session, ledger):
    payment = _draft_payment(db_session, ledger)

    result = approvals.atomic_transition_status(
        db=db_session,
        model=models.Payment,
        record_id=payment.id,
        to_status=ApprovalStatus.approved,
        allowed_from={ApprovalStatus.submitted_for_approval},
    )
    assert result.updated is False
    assert result.rowcount == 0

    result = approvals.atomic_transition_status(
        db=db_session,
        model=models.Payment,
        record_id=payment.id,
        to_status=ApprovalStatus.submitted_for_approval,
        allowed_from={ApprovalStatus.draft},
        updates={"updated_by": 7},
    )
    assert result.updated is True
    assert result.rowcount == 1
