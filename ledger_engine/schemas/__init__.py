from ledger_engine.schemas.bank_accounts import (
    ExchangeRateCreate,
    ExchangeRateRead,
    ExchangeRateResolved,
)
from ledger_engine.schemas.fund_transfers import (
    FundTransferCreate,
    FundTransferRead,
    FundTransferUpdate,
    TransferComment,
)
from ledger_engine.schemas.ledger import GlJournalLineRead, GlJournalRead, HistoryRead
from ledger_engine.schemas.payments import (
    EditRequestCreate,
    EditRequestDecision,
    PaymentAllocationCreate,
    PaymentAllocationRead,
    PaymentApprove,
    PaymentCreate,
    PaymentRead,
    PaymentStatusChange,
    PaymentUpdate,
)

__all__ = [
    "EditRequestCreate",
    "EditRequestDecision",
    "ExchangeRateCreate",
    "ExchangeRateRead",
    "ExchangeRateResolved",
    "FundTransferCreate",
    "FundTransferRead",
    "FundTransferUpdate",
    "GlJournalLineRead",
    "GlJournalRead",
    "HistoryRead",
    "PaymentAllocationCreate",
    "PaymentAllocationRead",
    "PaymentApprove",
    "PaymentCreate",
    "PaymentRead",
    "PaymentStatusChange",
    "PaymentUpdate",
    "TransferComment",
]
