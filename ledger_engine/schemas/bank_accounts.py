from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ExchangeRateCreate(BaseModel):
    effective_from: date
    rate_to_base: float = Field(..., gt=0)


class ExchangeRateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bank_account_id: int
    effective_from: date
    rate_to_base: float
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


class ExchangeRateResolved(BaseModel):
    bank_account_id: int
    on_date: date
    currency_code: Optional[str] = None
    # None when no rate is effective on the date.
    rate_to_base: Optional[float] = None
