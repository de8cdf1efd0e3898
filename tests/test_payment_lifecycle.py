from datetime import date

import pytest

from ledger_engine import models
from ledger_engine.core.errors import NotFoundError, ValidationError
from ledger_engine.models import ApprovalStatus, HistoryAction, PaymentDirection
from ledger_engine.schemas import PaymentCreate
from ledger_engine.services import payments

from conftest import USD_RATE, submit_and_approve, tt_payment

OUT = PaymentDirection.outward


def _bill(ledger, amount=40.0, bill=None):
    return [{"alloc_type": "bill", "reference_id": (bill or ledger.bill).id, "amount": amount}]


def _create(db, ledger, **overrides):
    payment = payments.create_payment(
        db,
        OUT,
        tt_payment(
            party_id=ledger.supplier.id,
            bank_account_id=overrides.pop("bank_account_id", ledger.aed_bank.id),
            allocations=overrides.pop("allocations", _bill(ledger)),
            **overrides,
        ),
        actor_id=1,
    )
    db.commit()
    return payment


def test_create_draft_with_number_totals_and_history(db_session, ledger):
    payment = _create(db_session, ledger)

    assert payment.payment_number == "PAY-OUT-000001"
    assert payment.status == ApprovalStatus.draft
    assert payment.party_type == models.PartyType.supplier
    assert payment.currency_code == "AED"
    assert payment.currency_id == ledger.aed.id
    assert payment.total_amount_bank == pytest.approx(40.0)
    assert payment.total_amount_base == pytest.approx(40.0)
    assert payment.created_by == 1

    history = payments.payment_history(db_session, OUT, payment.id)
    assert [h.action for h in history] == [HistoryAction.created]
    assert history[0].details == {"payment_number": "PAY-OUT-000001"}


def test_foreign_settlement_freezes_rate(db_session, ledger):
    payment = _create(
        db_session,
        ledger,
        bank_account_id=ledger.usd_bank.id,
        allocations=_bill(ledger, 100.0, ledger.usd_bill),
    )
    assert payment.fx_rate == pytest.approx(USD_RATE)
    assert payment.total_amount_base == pytest.approx(100.0 * USD_RATE)
    assert payment.allocations[0].amount_base == pytest.approx(100.0 * USD_RATE)

    # A later rate does not touch the stored payment.
    db_session.add(
        models.BankExchangeRate(
            bank_account_id=ledger.usd_bank.id, effective_from=date(2026, 3, 1), rate_to_base=4.0
        )
    )
    db_session.commit()
    db_session.expire_all()
    assert payments.get_payment(db_session, OUT, payment.id).fx_rate == pytest.approx(USD_RATE)


def test_missing_rate_for_foreign_account_fails(db_session, ledger):
    with pytest.raises(ValidationError) as exc:
        _create(
            db_session,
            ledger,
            bank_account_id=ledger.usd_bank.id,
            allocations=_bill(ledger, 10.0, ledger.usd_bill),
            transaction_date="2025-06-01",
        )
    assert "No exchange rate" in exc.value.message


def test_method_specific_fields_are_required(db_session, ledger):
    with pytest.raises(ValidationError):
        _create(db_session, ledger, tt_ref_no=None)
    with pytest.raises(ValidationError):
        _create(db_session, ledger, value_date=None)
    with pytest.raises(ValidationError):
        payments.create_payment(
            db_session,
            OUT,
            PaymentCreate(
                party_id=ledger.supplier.id,
                payment_method="CHEQUE",
                transaction_date=date(2026, 3, 15),
                cheque_no="000123",
                cheque_date=date(2026, 3, 20),
                allocations=_bill(ledger),
            ),
            actor_id=1,
        )


def test_unknown_party_and_account_are_not_found(db_session, ledger):
    with pytest.raises(NotFoundError):
        payments.create_payment(
            db_session,
            OUT,
            tt_payment(party_id=9999, bank_account_id=ledger.aed_bank.id, allocations=_bill(ledger)),
            actor_id=1,
        )
    with pytest.raises(NotFoundError):
        _create(db_session, ledger, bank_account_id=9999)


def test_submit_approve_sets_approval_metadata(db_session, ledger):
    payment = _create(db_session, ledger)
    submit_and_approve(db_session, OUT, payment.id, approver_id=5, comment="ok")

    db_session.expire_all()
    payment = payments.get_payment(db_session, OUT, payment.id)
    assert payment.status == ApprovalStatus.approved
    assert payment.approved_by == 5
    assert payment.approved_at is not None

    actions = [h.action for h in payments.payment_history(db_session, OUT, payment.id)]
    assert actions == [HistoryAction.approved, HistoryAction.submitted_for_approval, HistoryAction.created]


def test_edit_of_submitted_payment_returns_to_draft_and_records_changes(db_session, ledger):
    payment = _create(db_session, ledger)
    payments.change_payment_status(
        db_session, OUT, payment.id, ApprovalStatus.submitted_for_approval, actor_id=1
    )
    db_session.commit()

    edited = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=_bill(ledger, 55.0),
        notes="corrected amount",
    )
    payment = payments.update_payment(db_session, OUT, payment.id, edited, actor_id=9)
    db_session.commit()

    assert payment.status == ApprovalStatus.draft
    assert payment.updated_by == 9
    assert payment.total_amount_bank == pytest.approx(55.0)
    assert [a.amount_bank for a in payment.allocations] == [55.0]

    latest = payments.payment_history(db_session, OUT, payment.id)[0]
    assert latest.action == HistoryAction.updated
    changes = latest.details["changes"]
    assert changes["notes"] == {"from": None, "to": "corrected amount"}
    assert changes["total_amount_bank"]["to"] == 55.0
    assert changes["allocations"] == [f"bill:{ledger.bill.id}"]


def test_unchanged_allocations_are_kept(db_session, ledger):
    payment = _create(db_session, ledger)
    original_ids = [a.id for a in payment.allocations]

    same = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=_bill(ledger),
        reference_no="REF-9",
    )
    payment = payments.update_payment(db_session, OUT, payment.id, same, actor_id=1)
    db_session.commit()

    assert [a.id for a in payment.allocations] == original_ids
    changes = payments.payment_history(db_session, OUT, payment.id)[0].details["changes"]
    assert "allocations" not in changes
    assert changes["reference_no"]["to"] == "REF-9"


def test_rejected_payment_can_be_edited(db_session, ledger):
    payment = _create(db_session, ledger)
    payments.change_payment_status(
        db_session, OUT, payment.id, ApprovalStatus.submitted_for_approval, actor_id=1
    )
    payments.change_payment_status(
        db_session, OUT, payment.id, ApprovalStatus.rejected, actor_id=2, comment="missing docs"
    )
    db_session.commit()
    assert payment.status == ApprovalStatus.rejected

    payment = payments.update_payment(
        db_session,
        OUT,
        payment.id,
        tt_payment(party_id=ledger.supplier.id, bank_account_id=ledger.aed_bank.id, allocations=_bill(ledger, 30.0)),
        actor_id=1,
    )
    assert payment.status == ApprovalStatus.draft


def test_approved_payment_cannot_be_edited_without_edit_request(db_session, ledger):
    payment = _create(db_session, ledger)
    submit_and_approve(db_session, OUT, payment.id)

    with pytest.raises(ValidationError) as exc:
        payments.update_payment(
            db_session,
            OUT,
            payment.id,
            tt_payment(party_id=ledger.supplier.id, bank_account_id=ledger.aed_bank.id, allocations=_bill(ledger, 30.0)),
            actor_id=1,
        )
    assert "request an edit" in exc.value.message


def test_only_drafts_can_be_deleted(db_session, ledger):
    payment = _create(db_session, ledger)
    payments.change_payment_status(
        db_session, OUT, payment.id, ApprovalStatus.submitted_for_approval, actor_id=1
    )
    db_session.commit()

    with pytest.raises(ValidationError):
        payments.delete_payment(db_session, OUT, payment.id, actor_id=1)


def test_deleted_payment_is_hidden(db_session, ledger):
    payment = _create(db_session, ledger)
    payments.delete_payment(db_session, OUT, payment.id, actor_id=1)
    db_session.commit()

    with pytest.raises(NotFoundError):
        payments.get_payment(db_session, OUT, payment.id)
    assert db_session.get(models.Payment, payment.id).is_deleted is True


def test_direction_scopes_lookup(db_session, ledger):
    payment = _create(db_session, ledger)
    with pytest.raises(NotFoundError):
        payments.get_payment(db_session, PaymentDirection.inward, payment.id)


def test_approval_revalidates_against_current_balances(db_session, ledger):
    payment = _create(db_session, ledger, allocations=_bill(ledger, 90.0))
    payments.change_payment_status(
        db_session, OUT, payment.id, ApprovalStatus.submitted_for_approval, actor_id=1
    )
    db_session.commit()

    # The bill total was reduced after the payment was saved.
    db_session.query(models.Bill).filter(models.Bill.id == ledger.bill.id).update(
        {"total": 80.0}, synchronize_session=False
    )
    db_session.commit()

    with pytest.raises(ValidationError):
        payments.approve_payment(db_session, OUT, payment.id, actor_id=2)
    db_session.rollback()

    assert db_session.query(models.GlJournal).count() == 0
