from ledger_engine.services import fund_transfers, payments
from ledger_engine.services.history import append_history

__all__ = [
    "append_history",
    "fund_transfers",
    "payments",
]
