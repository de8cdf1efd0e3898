import os
import tempfile

# Set environment variables BEFORE any ledger_engine imports;
# ledger_engine.config.settings is loaded once at import time.
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "test_ledger_engine.db")
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"
os.environ["BASE_CURRENCY"] = "AED"

from datetime import date  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from ledger_engine import models  # noqa: E402
from ledger_engine.database import Base, get_db  # noqa: E402
from ledger_engine.database import engine as app_engine  # noqa: E402
from ledger_engine.main import app  # noqa: E402
from ledger_engine.schemas import PaymentCreate  # noqa: E402
from ledger_engine.services import payments  # noqa: E402

TEST_ENGINE = app_engine

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=TEST_ENGINE, future=True)

USD_RATE = 3.6725
TX_DATE = date(2026, 3, 15)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """Fresh schema per test; dependency overrides restored afterwards."""
    original_overrides = dict(app.dependency_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)

    yield

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


def seed_ledger(db) -> SimpleNamespace:
    """Currencies, control accounts, two bank accounts, parties and one of each obligation."""

    aed = models.Currency(code="AED", name="UAE Dirham")
    usd = models.Currency(code="USD", name="US Dollar")
    db.add_all([aed, usd])
    db.flush()

    ap = models.ChartAccount(code="2100", name="Accounts Payable")
    ar = models.ChartAccount(code="1200", name="Accounts Receivable")
    cash = models.ChartAccount(code="1000", name="Cash in Hand")
    aed_bank_gl = models.ChartAccount(code="1010", name="Bank - AED Current")
    usd_bank_gl = models.ChartAccount(code="1020", name="Bank - USD Current")
    db.add_all([ap, ar, cash, aed_bank_gl, usd_bank_gl])
    db.flush()

    aed_bank = models.BankAccount(
        bank_name="Emirates NBD",
        account_no="AE-001",
        currency_code="AED",
        currency_id=aed.id,
        coa_id=aed_bank_gl.id,
    )
    usd_bank = models.BankAccount(
        bank_name="Mashreq USD",
        account_no="AE-002",
        currency_code="USD",
        currency_id=usd.id,
        coa_id=usd_bank_gl.id,
    )
    db.add_all([aed_bank, usd_bank])
    db.flush()

    db.add(
        models.BankExchangeRate(
            bank_account_id=usd_bank.id, effective_from=date(2026, 1, 1), rate_to_base=USD_RATE
        )
    )

    supplier = models.Supplier(name="Gulf Metals LLC")
    other_supplier = models.Supplier(name="Desert Freight")
    customer = models.Customer(name="Al Noor Trading")
    db.add_all([supplier, other_supplier, customer])
    db.flush()

    bill = models.Bill(
        bill_number="BILL-0001", supplier_id=supplier.id, currency_id=aed.id, total=100.0, open_balance=100.0
    )
    bill2 = models.Bill(
        bill_number="BILL-0002", supplier_id=supplier.id, currency_id=aed.id, total=400.0, open_balance=400.0
    )
    other_bill = models.Bill(
        bill_number="BILL-0003", supplier_id=other_supplier.id, currency_id=aed.id, total=50.0, open_balance=50.0
    )
    usd_bill = models.Bill(
        bill_number="BILL-0004", supplier_id=supplier.id, currency_id=usd.id, total=1000.0, open_balance=1000.0
    )
    po = models.PurchaseOrder(
        po_number="PO-0001", supplier_id=supplier.id, currency_id=aed.id, total=500.0, open_balance=500.0
    )
    invoice = models.Invoice(
        invoice_number="INV-0001", customer_id=customer.id, currency_id=aed.id, total=250.0, open_balance=250.0
    )
    proforma = models.Proforma(
        proforma_number="PRO-0001", customer_id=customer.id, currency_id=aed.id, total=300.0, open_balance=300.0
    )
    db.add_all([bill, bill2, other_bill, usd_bill, po, invoice, proforma])
    db.commit()

    return SimpleNamespace(
        aed=aed,
        usd=usd,
        ap=ap,
        ar=ar,
        cash=cash,
        aed_bank_gl=aed_bank_gl,
        usd_bank_gl=usd_bank_gl,
        aed_bank=aed_bank,
        usd_bank=usd_bank,
        supplier=supplier,
        other_supplier=other_supplier,
        customer=customer,
        bill=bill,
        bill2=bill2,
        other_bill=other_bill,
        usd_bill=usd_bill,
        po=po,
        invoice=invoice,
        proforma=proforma,
    )


@pytest.fixture
def ledger(db_session):
    return seed_ledger(db_session)


def tt_payload(*, party_id: int, bank_account_id: int, allocations, **overrides) -> dict:
    payload = {
        "party_id": party_id,
        "payment_method": "TT",
        "bank_account_id": bank_account_id,
        "transaction_date": TX_DATE.isoformat(),
        "tt_ref_no": "TT-REF-1",
        "value_date": TX_DATE.isoformat(),
        "allocations": allocations,
    }
    payload.update(overrides)
    return payload


def tt_payment(*, party_id: int, bank_account_id: int, allocations, **overrides) -> PaymentCreate:
    return PaymentCreate(
        **tt_payload(
            party_id=party_id, bank_account_id=bank_account_id, allocations=allocations, **overrides
        )
    )


def submit_and_approve(db, direction, payment_id: int, *, approver_id: int = 2, **approve_kwargs):
    payments.change_payment_status(
        db, direction, payment_id, models.ApprovalStatus.submitted_for_approval, actor_id=1
    )
    payment = payments.approve_payment(db, direction, payment_id, actor_id=approver_id, **approve_kwargs)
    db.commit()
    return payment
