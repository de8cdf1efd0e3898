# ruff: noqa: E501
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.database import Base


class ApprovalStatus(PyEnum):
    draft = "draft"
    submitted_for_approval = "submitted_for_approval"
    approved = "approved"
    rejected = "rejected"


class EditRequestStatus(PyEnum):
    none = "none"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PaymentDirection(PyEnum):
    inward = "IN"
    outward = "OUT"


class PartyType(PyEnum):
    supplier = "SUPPLIER"
    customer = "CUSTOMER"


class PaymentMethod(PyEnum):
    cash = "CASH"
    cheque = "CHEQUE"
    tt = "TT"


class AllocationType(PyEnum):
    bill = "bill"
    advance = "advance"
    invoice = "invoice"


class ObligationKind(PyEnum):
    bill = "bill"
    purchase_order = "purchase_order"
    invoice = "invoice"
    proforma = "proforma"


class JournalSourceType(PyEnum):
    outward_payment = "OUTWARD_PAYMENT"
    inward_payment = "INWARD_PAYMENT"
    fund_transfer = "FUND_TRANSFER"


class HistoryModule(PyEnum):
    outward_payment = "outward_payment"
    inward_payment = "inward_payment"
    fund_transfer = "fund_transfer"


class HistoryAction(PyEnum):
    created = "CREATED"
    updated = "UPDATED"
    status_changed = "STATUS_CHANGED"
    submitted_for_approval = "SUBMITTED_FOR_APPROVAL"
    approved = "APPROVED"
    rejected = "REJECTED"
    edit_requested = "EDIT_REQUESTED"
    edit_request_approved = "EDIT_REQUEST_APPROVED"
    edit_request_rejected = "EDIT_REQUEST_REJECTED"
    deleted = "DELETED"


# --- master data (system of record; the engine only reads these) ---


class Currency(Base):
    __tablename__ = "currencies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(64))


class ChartAccount(Base):
    __tablename__ = "chart_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str | None] = mapped_column(String(32), unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_no: Mapped[str | None] = mapped_column(String(64))
    currency_code: Mapped[str | None] = mapped_column(String(8))
    currency_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    coa_id: Mapped[int | None] = mapped_column(ForeignKey("chart_accounts.id"), nullable=True)

    exchange_rates = relationship(
        "BankExchangeRate",
        back_populates="bank_account",
        cascade="all, delete-orphan",
        order_by="BankExchangeRate.effective_from.desc()",
    )


class BankExchangeRate(Base):
    __tablename__ = "bank_exchange_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bank_account_id: Mapped[int] = mapped_column(
        ForeignKey("bank_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    rate_to_base: Mapped[float] = mapped_column(Float, nullable=False)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    bank_account = relationship("BankAccount", back_populates="exchange_rates")

    __table_args__ = (
        UniqueConstraint("bank_account_id", "effective_from", name="uq_bank_rate_account_effective_from"),
    )


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


# --- obligations (the engine writes only open_balance) ---


class Bill(Base):
    __tablename__ = "bills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bill_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id"), nullable=False, index=True)
    currency_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    open_balance: Mapped[float | None] = mapped_column(Float)


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    po_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id"), nullable=False, index=True)
    currency_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    open_balance: Mapped[float | None] = mapped_column(Float)


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    currency_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    open_balance: Mapped[float | None] = mapped_column(Float)


class Proforma(Base):
    __tablename__ = "proformas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proforma_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    currency_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    open_balance: Mapped[float | None] = mapped_column(Float)


# --- owned records ---


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payment_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    direction: Mapped[PaymentDirection] = mapped_column(
        Enum(PaymentDirection, native_enum=False), nullable=False, index=True
    )
    party_type: Mapped[PartyType] = mapped_column(Enum(PartyType, native_enum=False), nullable=False)
    party_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, native_enum=False), nullable=False
    )
    bank_account_id: Mapped[int | None] = mapped_column(ForeignKey("bank_accounts.id"), nullable=True)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    cheque_no: Mapped[str | None] = mapped_column(String(64))
    cheque_date: Mapped[date | None] = mapped_column(Date)
    tt_ref_no: Mapped[str | None] = mapped_column(String(64))
    value_date: Mapped[date | None] = mapped_column(Date)
    reference_no: Mapped[str | None] = mapped_column(String(128))
    notes: Mapped[str | None] = mapped_column(Text)

    # Settlement currency and frozen conversion.
    currency_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    currency_code: Mapped[str | None] = mapped_column(String(8))
    total_amount_bank: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_amount_base: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    fx_rate: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, native_enum=False),
        default=ApprovalStatus.draft,
        nullable=False,
        index=True,
    )
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reconcile_date: Mapped[date | None] = mapped_column(Date)
    reconcile_number: Mapped[str | None] = mapped_column(String(64))

    edit_request_status: Mapped[EditRequestStatus] = mapped_column(
        Enum(EditRequestStatus, native_enum=False),
        default=EditRequestStatus.none,
        nullable=False,
    )
    edit_request_reason: Mapped[str | None] = mapped_column(Text)
    edit_requested_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    edit_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    edit_approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    edit_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    edit_rejection_reason: Mapped[str | None] = mapped_column(Text)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    allocations = relationship(
        "PaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAllocation.id",
    )
    bank_account = relationship("BankAccount")


class PaymentAllocation(Base):
    __tablename__ = "payment_allocations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payment_id: Mapped[int] = mapped_column(
        ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    alloc_type: Mapped[AllocationType] = mapped_column(
        Enum(AllocationType, native_enum=False), nullable=False
    )
    # bill / purchase order / invoice / proforma id depending on direction + alloc_type
    reference_id: Mapped[int] = mapped_column(Integer, nullable=False)
    party_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    amount_bank: Mapped[float] = mapped_column(Float, nullable=False)
    amount_base: Mapped[float] = mapped_column(Float, nullable=False)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    payment = relationship("Payment", back_populates="allocations")

    __table_args__ = (Index("ix_payment_allocations_type_reference", "alloc_type", "reference_id"),)


class FundTransfer(Base):
    __tablename__ = "fund_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transfer_no: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    from_bank_account_id: Mapped[int] = mapped_column(ForeignKey("bank_accounts.id"), nullable=False)
    to_bank_account_id: Mapped[int] = mapped_column(ForeignKey("bank_accounts.id"), nullable=False)
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)

    amount_from_currency: Mapped[float] = mapped_column(Float, nullable=False)
    from_currency_code: Mapped[str | None] = mapped_column(String(8))
    from_currency_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    to_currency_code: Mapped[str | None] = mapped_column(String(8))
    rate_from_to_base: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    rate_to_to_base: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    amount_base: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    amount_to_currency: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rate_overridden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    reference: Mapped[str | None] = mapped_column(String(128))
    notes: Mapped[str | None] = mapped_column(Text)

    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, native_enum=False),
        default=ApprovalStatus.draft,
        nullable=False,
        index=True,
    )
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    edit_request_status: Mapped[EditRequestStatus] = mapped_column(
        Enum(EditRequestStatus, native_enum=False),
        default=EditRequestStatus.none,
        nullable=False,
    )
    edit_request_reason: Mapped[str | None] = mapped_column(Text)
    edit_requested_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    edit_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    edit_approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    edit_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    edit_rejection_reason: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    from_bank_account = relationship("BankAccount", foreign_keys=[from_bank_account_id])
    to_bank_account = relationship("BankAccount", foreign_keys=[to_bank_account_id])


# --- general ledger ---


class GlJournal(Base):
    __tablename__ = "gl_journals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    journal_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    journal_date: Mapped[date] = mapped_column(Date, nullable=False)
    source_type: Mapped[JournalSourceType] = mapped_column(
        Enum(JournalSourceType, native_enum=False), nullable=False
    )
    source_id: Mapped[int] = mapped_column(Integer, nullable=False)
    source_name: Mapped[str | None] = mapped_column(String(64))
    source_date: Mapped[date | None] = mapped_column(Date)
    memo: Mapped[str | None] = mapped_column(Text)

    currency_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    exchange_rate: Mapped[float | None] = mapped_column(Float)
    foreign_amount: Mapped[float | None] = mapped_column(Float)
    total_amount: Mapped[float | None] = mapped_column(Float)

    reconcile_date: Mapped[date | None] = mapped_column(Date)
    reconcile_number: Mapped[str | None] = mapped_column(String(64))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    lines = relationship(
        "GlJournalLine",
        back_populates="journal",
        cascade="all, delete-orphan",
        order_by="GlJournalLine.line_no",
    )

    # One active journal per source is kept procedurally (soft delete, then insert).
    __table_args__ = (Index("ix_gl_journals_source", "source_type", "source_id"),)


class GlJournalLine(Base):
    __tablename__ = "gl_journal_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    journal_id: Mapped[int] = mapped_column(
        ForeignKey("gl_journals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("chart_accounts.id"), nullable=False)
    debit: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    credit: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    entity_type: Mapped[str | None] = mapped_column(String(16))
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(Text)
    currency_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    foreign_amount: Mapped[float | None] = mapped_column(Float)
    total_amount: Mapped[float | None] = mapped_column(Float)
    is_advance: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    invoice_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    journal = relationship("GlJournal", back_populates="lines")


class History(Base):
    __tablename__ = "history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module: Mapped[HistoryModule] = mapped_column(
        Enum(HistoryModule, native_enum=False), nullable=False
    )
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    action: Mapped[HistoryAction] = mapped_column(
        Enum(HistoryAction, native_enum=False), nullable=False, index=True
    )
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_history_module_entity", "module", "entity_id"),)
