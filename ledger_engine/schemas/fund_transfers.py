from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ledger_engine.models import ApprovalStatus, EditRequestStatus


class FundTransferCreate(BaseModel):
    from_bank_account_id: int = Field(..., gt=0)
    to_bank_account_id: int = Field(..., gt=0)
    transfer_date: date
    amount_from_currency: float
    # When set, the supplied rates are stored verbatim instead of looked up.
    rate_overridden: bool = False
    rate_from_to_base: Optional[float] = Field(None, gt=0)
    rate_to_to_base: Optional[float] = Field(None, gt=0)
    reference: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = None


class FundTransferUpdate(BaseModel):
    from_bank_account_id: Optional[int] = Field(None, gt=0)
    to_bank_account_id: Optional[int] = Field(None, gt=0)
    transfer_date: Optional[date] = None
    amount_from_currency: Optional[float] = None
    rate_overridden: Optional[bool] = None
    rate_from_to_base: Optional[float] = Field(None, gt=0)
    rate_to_to_base: Optional[float] = Field(None, gt=0)
    reference: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = None


class TransferComment(BaseModel):
    comment: Optional[str] = None


class FundTransferRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transfer_no: str
    from_bank_account_id: int
    to_bank_account_id: int
    transfer_date: date
    amount_from_currency: float
    from_currency_code: Optional[str] = None
    from_currency_id: Optional[int] = None
    to_currency_code: Optional[str] = None
    rate_from_to_base: float
    rate_to_to_base: float
    amount_base: float
    amount_to_currency: float
    rate_overridden: bool
    reference: Optional[str] = None
    notes: Optional[str] = None
    status: ApprovalStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    edit_request_status: EditRequestStatus
    edit_request_reason: Optional[str] = None
    edit_requested_by: Optional[int] = None
    edit_requested_at: Optional[datetime] = None
    edit_approved_by: Optional[int] = None
    edit_approved_at: Optional[datetime] = None
    edit_rejection_reason: Optional[str] = None
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
