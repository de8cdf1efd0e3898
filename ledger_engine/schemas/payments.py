from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledger_engine.models import (
    AllocationType,
    ApprovalStatus,
    EditRequestStatus,
    PartyType,
    PaymentDirection,
    PaymentMethod,
)


def _clean_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    vv = str(v).strip()
    return vv or None


class PaymentAllocationCreate(BaseModel):
    alloc_type: AllocationType
    reference_id: Optional[int] = None
    amount: float


class PaymentAllocationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    alloc_type: AllocationType
    reference_id: int
    party_id: Optional[int] = None
    amount_bank: float
    amount_base: float


class PaymentBase(BaseModel):
    party_id: int = Field(..., gt=0)
    payment_method: PaymentMethod
    bank_account_id: Optional[int] = None
    transaction_date: date
    cheque_no: Optional[str] = Field(None, max_length=64)
    cheque_date: Optional[date] = None
    tt_ref_no: Optional[str] = Field(None, max_length=64)
    value_date: Optional[date] = None
    reference_no: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = None

    @field_validator("cheque_no", "tt_ref_no", "reference_no", "notes")
    @classmethod
    def clean_text(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v)


class PaymentCreate(PaymentBase):
    allocations: List[PaymentAllocationCreate] = []


class PaymentUpdate(PaymentCreate):
    """Full replacement of an editable payment."""


class PaymentStatusChange(BaseModel):
    status: ApprovalStatus
    comment: Optional[str] = None


class PaymentApprove(BaseModel):
    comment: Optional[str] = None
    reconcile_date: Optional[date] = None
    reconcile_number: Optional[str] = Field(None, max_length=64)


class EditRequestCreate(BaseModel):
    reason: str = ""


class EditRequestDecision(BaseModel):
    decision: Literal["approve", "reject"]
    reason: Optional[str] = None


class PaymentRead(PaymentBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    payment_number: str
    direction: PaymentDirection
    party_type: PartyType
    currency_id: Optional[int] = None
    currency_code: Optional[str] = None
    total_amount_bank: float
    total_amount_base: float
    fx_rate: float
    status: ApprovalStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    reconcile_date: Optional[date] = None
    reconcile_number: Optional[str] = None
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
    allocations: List[PaymentAllocationRead] = []
