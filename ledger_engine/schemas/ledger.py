from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from ledger_engine.models import HistoryAction, HistoryModule, JournalSourceType


class GlJournalLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    line_no: int
    account_id: int
    debit: float
    credit: float
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    description: Optional[str] = None
    currency_id: Optional[int] = None
    foreign_amount: Optional[float] = None
    total_amount: Optional[float] = None
    is_advance: bool
    invoice_id: Optional[int] = None


class GlJournalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    journal_number: str
    journal_date: date
    source_type: JournalSourceType
    source_id: int
    source_name: Optional[str] = None
    source_date: Optional[date] = None
    memo: Optional[str] = None
    currency_id: Optional[int] = None
    exchange_rate: Optional[float] = None
    foreign_amount: Optional[float] = None
    total_amount: Optional[float] = None
    reconcile_date: Optional[date] = None
    reconcile_number: Optional[str] = None
    is_deleted: bool
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    lines: List[GlJournalLineRead] = []


class HistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    module: HistoryModule
    entity_id: int
    actor_id: Optional[int] = None
    action: HistoryAction
    details: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
