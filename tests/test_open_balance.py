import pytest

from ledger_engine import models
from ledger_engine.models import ObligationKind, PaymentDirection
from ledger_engine.services import payments
from ledger_engine.services.open_balance import recompute_many, recompute_open_balance

from conftest import USD_RATE, tt_payment


def _reload(db, obj):
    db.expire_all()
    return db.get(type(obj), obj.id)


def test_create_updates_open_balance(db_session, ledger):
    data = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[{"alloc_type": "bill", "reference_id": ledger.bill.id, "amount": 40.0}],
    )
    payments.create_payment(db_session, PaymentDirection.outward, data, actor_id=1)
    db_session.commit()

    assert _reload(db_session, ledger.bill).open_balance == pytest.approx(60.0)


def test_same_currency_settlement_counts_bank_amount(db_session, ledger):
    # USD bill paid from the USD account: 50 USD reduces it by 50, not by 50 * rate.
    data = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.usd_bank.id,
        allocations=[{"alloc_type": "bill", "reference_id": ledger.usd_bill.id, "amount": 50.0}],
    )
    payment = payments.create_payment(db_session, PaymentDirection.outward, data, actor_id=1)
    db_session.commit()

    assert payment.fx_rate == pytest.approx(USD_RATE)
    assert _reload(db_session, ledger.usd_bill).open_balance == pytest.approx(950.0)


def test_cross_currency_settlement_counts_base_amount(db_session, ledger):
    # AED bill paid from the USD account: reduced by the converted amount.
    data = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.usd_bank.id,
        allocations=[{"alloc_type": "bill", "reference_id": ledger.bill2.id, "amount": 100.0}],
    )
    payments.create_payment(db_session, PaymentDirection.outward, data, actor_id=1)
    db_session.commit()

    assert _reload(db_session, ledger.bill2).open_balance == pytest.approx(400.0 - 100.0 * USD_RATE)


def test_removed_allocation_restores_previous_obligation(db_session, ledger):
    data = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[{"alloc_type": "bill", "reference_id": ledger.bill.id, "amount": 80.0}],
    )
    payment = payments.create_payment(db_session, PaymentDirection.outward, data, actor_id=1)
    db_session.commit()
    assert _reload(db_session, ledger.bill).open_balance == pytest.approx(20.0)

    moved = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[{"alloc_type": "bill", "reference_id": ledger.bill2.id, "amount": 80.0}],
    )
    payments.update_payment(db_session, PaymentDirection.outward, payment.id, moved, actor_id=1)
    db_session.commit()

    assert _reload(db_session, ledger.bill).open_balance == pytest.approx(100.0)
    assert _reload(db_session, ledger.bill2).open_balance == pytest.approx(320.0)


def test_deleting_draft_restores_balance(db_session, ledger):
    data = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[{"alloc_type": "advance", "reference_id": ledger.po.id, "amount": 125.0}],
    )
    payment = payments.create_payment(db_session, PaymentDirection.outward, data, actor_id=1)
    db_session.commit()
    assert _reload(db_session, ledger.po).open_balance == pytest.approx(375.0)

    payments.delete_payment(db_session, PaymentDirection.outward, payment.id, actor_id=1)
    db_session.commit()
    assert _reload(db_session, ledger.po).open_balance == pytest.approx(500.0)


def test_recompute_is_order_independent(db_session, ledger):
    for amount, ref in ((10.0, "TT-A"), (15.0, "TT-B")):
        payments.create_payment(
            db_session,
            PaymentDirection.inward,
            tt_payment(
                party_id=ledger.customer.id,
                bank_account_id=ledger.aed_bank.id,
                allocations=[{"alloc_type": "invoice", "reference_id": ledger.invoice.id, "amount": amount}],
                tt_ref_no=ref,
            ),
            actor_id=2,
        )
    db_session.commit()

    # Corrupt the cache, then recompute in both orders.
    invoice = _reload(db_session, ledger.invoice)
    invoice.open_balance = 0.0
    db_session.commit()

    first = recompute_open_balance(db_session, ObligationKind.invoice, ledger.invoice.id)
    results = recompute_many(
        db_session,
        [(ObligationKind.proforma, ledger.proforma.id), (ObligationKind.invoice, ledger.invoice.id)],
    )
    assert first == pytest.approx(225.0)
    assert results[(ObligationKind.invoice, ledger.invoice.id)] == pytest.approx(225.0)
    assert results[(ObligationKind.proforma, ledger.proforma.id)] == pytest.approx(300.0)


def test_deleted_payments_do_not_count(db_session, ledger):
    data = tt_payment(
        party_id=ledger.supplier.id,
        bank_account_id=ledger.aed_bank.id,
        allocations=[{"alloc_type": "bill", "reference_id": ledger.bill.id, "amount": 100.0}],
    )
    payment = payments.create_payment(db_session, PaymentDirection.outward, data, actor_id=1)
    db_session.commit()

    db_session.query(models.Payment).filter(models.Payment.id == payment.id).update(
        {"is_deleted": True}, synchronize_session=False
    )
    db_session.commit()

    assert recompute_open_balance(db_session, ObligationKind.bill, ledger.bill.id) == pytest.approx(100.0)
