"""initial ledger schema

Revision ID: 20260105_0001
Revises: None
Create Date: 2026-01-05
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260105_0001"
down_revision = None
branch_labels = None
depends_on = None


def _enum(*names: str, name: str) -> sa.Enum:
    # Stored as VARCHAR on every dialect (member names, as the ORM writes them).
    return sa.Enum(*names, name=name, native_enum=False, create_constraint=False)


APPROVAL_STATUS = ("draft", "submitted_for_approval", "approved", "rejected")
EDIT_REQUEST_STATUS = ("none", "pending", "approved", "rejected")


def _approval_columns() -> list[sa.Column]:
    return [
        sa.Column("status", _enum(*APPROVAL_STATUS, name="approvalstatus"), nullable=False),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "edit_request_status",
            _enum(*EDIT_REQUEST_STATUS, name="editrequeststatus"),
            nullable=False,
        ),
        sa.Column("edit_request_reason", sa.Text(), nullable=True),
        sa.Column("edit_requested_by", sa.Integer(), nullable=True),
        sa.Column("edit_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("edit_approved_by", sa.Integer(), nullable=True),
        sa.Column("edit_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("edit_rejection_reason", sa.Text(), nullable=True),
    ]


def _obligation_table(table: str, number_column: str, party_column: str, party_table: str) -> None:
    op.create_table(
        table,
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(number_column, sa.String(length=50), nullable=False, unique=True),
        sa.Column(party_column, sa.Integer(), sa.ForeignKey(f"{party_table}.id"), nullable=False),
        sa.Column("currency_id", sa.Integer(), nullable=True),
        sa.Column("total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("open_balance", sa.Float(), nullable=True),
    )
    op.create_index(f"ix_{table}_{party_column}", table, [party_column])


def upgrade() -> None:
    op.create_table(
        "currencies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(length=8), nullable=False, unique=True),
        sa.Column("name", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_currencies_code", "currencies", ["code"])

    op.create_table(
        "chart_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(length=32), nullable=True, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_index("ix_chart_accounts_name", "chart_accounts", ["name"])

    op.create_table(
        "bank_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bank_name", sa.String(length=255), nullable=False),
        sa.Column("account_no", sa.String(length=64), nullable=True),
        sa.Column("currency_code", sa.String(length=8), nullable=True),
        sa.Column("currency_id", sa.Integer(), nullable=True),
        sa.Column("coa_id", sa.Integer(), sa.ForeignKey("chart_accounts.id"), nullable=True),
    )

    op.create_table(
        "bank_exchange_rates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "bank_account_id",
            sa.Integer(),
            sa.ForeignKey("bank_accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("rate_to_base", sa.Float(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "bank_account_id", "effective_from", name="uq_bank_rate_account_effective_from"
        ),
    )
    op.create_index(
        "ix_bank_exchange_rates_bank_account_id", "bank_exchange_rates", ["bank_account_id"]
    )

    for table in ("suppliers", "customers"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=255), nullable=False),
        )

    _obligation_table("bills", "bill_number", "supplier_id", "suppliers")
    _obligation_table("purchase_orders", "po_number", "supplier_id", "suppliers")
    _obligation_table("invoices", "invoice_number", "customer_id", "customers")
    _obligation_table("proformas", "proforma_number", "customer_id", "customers")

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("payment_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("direction", _enum("inward", "outward", name="paymentdirection"), nullable=False),
        sa.Column("party_type", _enum("supplier", "customer", name="partytype"), nullable=False),
        sa.Column("party_id", sa.Integer(), nullable=False),
        sa.Column(
            "payment_method", _enum("cash", "cheque", "tt", name="paymentmethod"), nullable=False
        ),
        sa.Column("bank_account_id", sa.Integer(), sa.ForeignKey("bank_accounts.id"), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("cheque_no", sa.String(length=64), nullable=True),
        sa.Column("cheque_date", sa.Date(), nullable=True),
        sa.Column("tt_ref_no", sa.String(length=64), nullable=True),
        sa.Column("value_date", sa.Date(), nullable=True),
        sa.Column("reference_no", sa.String(length=128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("currency_id", sa.Integer(), nullable=True),
        sa.Column("currency_code", sa.String(length=8), nullable=True),
        sa.Column("total_amount_bank", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_amount_base", sa.Float(), nullable=False, server_default="0"),
        sa.Column("fx_rate", sa.Float(), nullable=False, server_default="1"),
        *_approval_columns(),
        sa.Column("reconcile_date", sa.Date(), nullable=True),
        sa.Column("reconcile_number", sa.String(length=64), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_payments_direction", "payments", ["direction"])
    op.create_index("ix_payments_party_id", "payments", ["party_id"])
    op.create_index("ix_payments_status", "payments", ["status"])

    op.create_table(
        "payment_allocations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "payment_id",
            sa.Integer(),
            sa.ForeignKey("payments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "alloc_type", _enum("bill", "advance", "invoice", name="allocationtype"), nullable=False
        ),
        sa.Column("reference_id", sa.Integer(), nullable=False),
        sa.Column("party_id", sa.Integer(), nullable=True),
        sa.Column("amount_bank", sa.Float(), nullable=False),
        sa.Column("amount_base", sa.Float(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_payment_allocations_payment_id", "payment_allocations", ["payment_id"])
    op.create_index(
        "ix_payment_allocations_type_reference",
        "payment_allocations",
        ["alloc_type", "reference_id"],
    )

    op.create_table(
        "fund_transfers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("transfer_no", sa.String(length=32), nullable=False, unique=True),
        sa.Column(
            "from_bank_account_id", sa.Integer(), sa.ForeignKey("bank_accounts.id"), nullable=False
        ),
        sa.Column(
            "to_bank_account_id", sa.Integer(), sa.ForeignKey("bank_accounts.id"), nullable=False
        ),
        sa.Column("transfer_date", sa.Date(), nullable=False),
        sa.Column("amount_from_currency", sa.Float(), nullable=False),
        sa.Column("from_currency_code", sa.String(length=8), nullable=True),
        sa.Column("from_currency_id", sa.Integer(), nullable=True),
        sa.Column("to_currency_code", sa.String(length=8), nullable=True),
        sa.Column("rate_from_to_base", sa.Float(), nullable=False, server_default="1"),
        sa.Column("rate_to_to_base", sa.Float(), nullable=False, server_default="1"),
        sa.Column("amount_base", sa.Float(), nullable=False, server_default="0"),
        sa.Column("amount_to_currency", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rate_overridden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_approval_columns(),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_fund_transfers_status", "fund_transfers", ["status"])

    op.create_table(
        "gl_journals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("journal_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("journal_date", sa.Date(), nullable=False),
        sa.Column(
            "source_type",
            _enum("outward_payment", "inward_payment", "fund_transfer", name="journalsourcetype"),
            nullable=False,
        ),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("source_name", sa.String(length=64), nullable=True),
        sa.Column("source_date", sa.Date(), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("currency_id", sa.Integer(), nullable=True),
        sa.Column("exchange_rate", sa.Float(), nullable=True),
        sa.Column("foreign_amount", sa.Float(), nullable=True),
        sa.Column("total_amount", sa.Float(), nullable=True),
        sa.Column("reconcile_date", sa.Date(), nullable=True),
        sa.Column("reconcile_number", sa.String(length=64), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_gl_journals_source", "gl_journals", ["source_type", "source_id"])

    op.create_table(
        "gl_journal_lines",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "journal_id",
            sa.Integer(),
            sa.ForeignKey("gl_journals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("chart_accounts.id"), nullable=False),
        sa.Column("debit", sa.Float(), nullable=False, server_default="0"),
        sa.Column("credit", sa.Float(), nullable=False, server_default="0"),
        sa.Column("entity_type", sa.String(length=16), nullable=True),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("currency_id", sa.Integer(), nullable=True),
        sa.Column("foreign_amount", sa.Float(), nullable=True),
        sa.Column("total_amount", sa.Float(), nullable=True),
        sa.Column("is_advance", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("invoice_id", sa.Integer(), nullable=True),
    )
    op.create_index("ix_gl_journal_lines_journal_id", "gl_journal_lines", ["journal_id"])

    op.create_table(
        "history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "module",
            _enum("outward_payment", "inward_payment", "fund_transfer", name="historymodule"),
            nullable=False,
        ),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column(
            "action",
            _enum(
                "created",
                "updated",
                "status_changed",
                "submitted_for_approval",
                "approved",
                "rejected",
                "edit_requested",
                "edit_request_approved",
                "edit_request_rejected",
                "deleted",
                name="historyaction",
            ),
            nullable=False,
        ),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_history_module_entity", "history", ["module", "entity_id"])
    op.create_index("ix_history_actor_id", "history", ["actor_id"])
    op.create_index("ix_history_action", "history", ["action"])


def downgrade() -> None:
    for table in (
        "history",
        "gl_journal_lines",
        "gl_journals",
        "fund_transfers",
        "payment_allocations",
        "payments",
        "proformas",
        "invoices",
        "purchase_orders",
        "bills",
        "customers",
        "suppliers",
        "bank_exchange_rates",
        "bank_accounts",
        "chart_accounts",
        "currencies",
    ):
        op.drop_table(table)
