# ruff: noqa: B008

from typing import List, Optional

from fastapi import APIRouter, Query, status
from sqlalchemy.orm import Session

from ledger_engine.api.deps import _ACTOR_DEP, _DB_DEP
from ledger_engine.database import transactional
from ledger_engine.schemas import (
    EditRequestCreate,
    EditRequestDecision,
    FundTransferCreate,
    FundTransferRead,
    FundTransferUpdate,
    GlJournalRead,
    HistoryRead,
    TransferComment,
)
from ledger_engine.services import fund_transfers as transfer_service

router = APIRouter(prefix="/fund-transfers", tags=["fund transfers"])


@router.post("", response_model=FundTransferRead, status_code=status.HTTP_201_CREATED)
def create_transfer(
    payload: FundTransferCreate,
    db: Session = _DB_DEP,
    actor_id: Optional[int] = _ACTOR_DEP,
):
    with transactional(db):
        transfer = transfer_service.create_transfer(db, payload, actor_id=actor_id)
    return transfer


@router.get("/{transfer_id}", response_model=FundTransferRead)
def get_transfer(transfer_id: int, db: Session = _DB_DEP):
    return transfer_service.get_transfer(db, transfer_id)


@router.put("/{transfer_id}", response_model=FundTransferRead)
def update_transfer(
    transfer_id: int,
    payload: FundTransferUpdate,
    db: Session = _DB_DEP,
    actor_id: Optional[int] = _ACTOR_DEP,
):
    with transactional(db):
        transfer = transfer_service.update_transfer(db, transfer_id, payload, actor_id=actor_id)
    return transfer


@router.post("/{transfer_id}/submit", response_model=FundTransferRead)
def submit_transfer(
    transfer_id: int,
    payload: Optional[TransferComment] = None,
    db: Session = _DB_DEP,
    actor_id: Optional[int] = _ACTOR_DEP,
):
    comment = payload.comment if payload else None
    with transactional(db):
        transfer = transfer_service.submit_transfer(
            db, transfer_id, actor_id=actor_id, comment=comment
        )
    return transfer


@router.post("/{transfer_id}/approve", response_model=FundTransferRead)
def approve_transfer(
    transfer_id: int,
    payload: Optional[TransferComment] = None,
    db: Session = _DB_DEP,
    actor_id: Optional[int] = _ACTOR_DEP,
):
    comment = payload.comment if payload else None
    with transactional(db):
        transfer = transfer_service.approve_transfer(
            db, transfer_id, actor_id=actor_id, comment=comment
        )
    return transfer


@router.post("/{transfer_id}/reject", response_model=FundTransferRead)
def reject_transfer(
    transfer_id: int,
    payload: Optional[TransferComment] = None,
    db: Session = _DB_DEP,
    actor_id: Optional[int] = _ACTOR_DEP,
):
    comment = payload.comment if payload else None
    with transactional(db):
        transfer = transfer_service.reject_transfer(
            db, transfer_id, actor_id=actor_id, comment=comment
        )
    return transfer


@router.post("/{transfer_id}/request-edit", response_model=FundTransferRead)
def request_edit(
    transfer_id: int,
    payload: EditRequestCreate,
    db: Session = _DB_DEP,
    actor_id: Optional[int] = _ACTOR_DEP,
):
    with transactional(db):
        transfer = transfer_service.request_transfer_edit(
            db, transfer_id, reason=payload.reason, actor_id=actor_id
        )
    return transfer


@router.post("/{transfer_id}/decide-edit-request", response_model=FundTransferRead)
def decide_edit_request(
    transfer_id: int,
    payload: EditRequestDecision,
    db: Session = _DB_DEP,
    actor_id: Optional[int] = _ACTOR_DEP,
):
    with transactional(db):
        transfer = transfer_service.decide_transfer_edit_request(
            db,
            transfer_id,
            approve=payload.decision == "approve",
            actor_id=actor_id,
            reason=payload.reason,
        )
    return transfer


@router.get("/{transfer_id}/history", response_model=List[HistoryRead])
def transfer_history(transfer_id: int, db: Session = _DB_DEP):
    return transfer_service.transfer_history(db, transfer_id)


@router.get("/{transfer_id}/journals", response_model=List[GlJournalRead])
def transfer_journals(
    transfer_id: int,
    include_deleted: bool = Query(False),
    db: Session = _DB_DEP,
):
    return transfer_service.transfer_journals(db, transfer_id, include_deleted=include_deleted)
