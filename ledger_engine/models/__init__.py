from ledger_engine.models.domain import (
    AllocationType,
    ApprovalStatus,
    BankAccount,
    BankExchangeRate,
    Bill,
    ChartAccount,
    Currency,
    Customer,
    EditRequestStatus,
    FundTransfer,
    GlJournal,
    GlJournalLine,
    History,
    HistoryAction,
    HistoryModule,
    Invoice,
    JournalSourceType,
    ObligationKind,
    PartyType,
    Payment,
    PaymentAllocation,
    PaymentDirection,
    PaymentMethod,
    Proforma,
    PurchaseOrder,
    Supplier,
)

__all__ = [
    "AllocationType",
    "ApprovalStatus",
    "BankAccount",
    "BankExchangeRate",
    "Bill",
    "ChartAccount",
    "Currency",
    "Customer",
    "EditRequestStatus",
    "FundTransfer",
    "GlJournal",
    "GlJournalLine",
    "History",
    "HistoryAction",
    "HistoryModule",
    "Invoice",
    "JournalSourceType",
    "ObligationKind",
    "PartyType",
    "Payment",
    "PaymentAllocation",
    "PaymentDirection",
    "PaymentMethod",
    "Proforma",
    "PurchaseOrder",
    "Supplier",
]
