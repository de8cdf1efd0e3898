# ruff: noqa: B008

from typing import List, Optional

from fastapi import APIRouter, Query, Response, status
from sqlalchemy.orm import Session

from ledger_engine.api.deps import _ACTOR_DEP, _DB_DEP
from ledger_engine.database import transactional
from ledger_engine.models import PaymentDirection
from ledger_engine.schemas import (
    EditRequestCreate,
    EditRequestDecision,
    GlJournalRead,
    HistoryRead,
    PaymentApprove,
    PaymentCreate,
    PaymentRead,
    PaymentStatusChange,
    PaymentUpdate,
)
from ledger_engine.services import payments as payment_service


def build_router(direction: PaymentDirection) -> APIRouter:
    """Same surface for both directions; only the direction differs."""

    slug = "outward" if direction == PaymentDirection.outward else "inward"
    router = APIRouter(prefix=f"/payments/{slug}", tags=[f"{slug} payments"])

    @router.post("", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
    def create_payment(
        payload: PaymentCreate,
        db: Session = _DB_DEP,
        actor_id: Optional[int] = _ACTOR_DEP,
    ):
        with transactional(db):
            payment = payment_service.create_payment(db, direction, payload, actor_id=actor_id)
        return payment

    @router.get("/{payment_id}", response_model=PaymentRead)
    def get_payment(payment_id: int, db: Session = _DB_DEP):
        return payment_service.get_payment(db, direction, payment_id)

    @router.put("/{payment_id}", response_model=PaymentRead)
    def update_payment(
        payment_id: int,
        payload: PaymentUpdate,
        db: Session = _DB_DEP,
        actor_id: Optional[int] = _ACTOR_DEP,
    ):
        with transactional(db):
            payment = payment_service.update_payment(
                db, direction, payment_id, payload, actor_id=actor_id
            )
        return payment

    @router.post("/{payment_id}/status", response_model=PaymentRead)
    def change_status(
        payment_id: int,
        payload: PaymentStatusChange,
        db: Session = _DB_DEP,
        actor_id: Optional[int] = _ACTOR_DEP,
    ):
        with transactional(db):
            payment = payment_service.change_payment_status(
                db,
                direction,
                payment_id,
                payload.status,
                actor_id=actor_id,
                comment=payload.comment,
            )
        return payment

    @router.post("/{payment_id}/approve", response_model=PaymentRead)
    def approve_payment(
        payment_id: int,
        payload: Optional[PaymentApprove] = None,
        db: Session = _DB_DEP,
        actor_id: Optional[int] = _ACTOR_DEP,
    ):
        payload = payload or PaymentApprove()
        with transactional(db):
            payment = payment_service.approve_payment(
                db,
                direction,
                payment_id,
                actor_id=actor_id,
                comment=payload.comment,
                reconcile_date=payload.reconcile_date,
                reconcile_number=payload.reconcile_number,
            )
        return payment

    @router.post("/{payment_id}/request-edit", response_model=PaymentRead)
    def request_edit(
        payment_id: int,
        payload: EditRequestCreate,
        db: Session = _DB_DEP,
        actor_id: Optional[int] = _ACTOR_DEP,
    ):
        with transactional(db):
            payment = payment_service.request_payment_edit(
                db, direction, payment_id, reason=payload.reason, actor_id=actor_id
            )
        return payment

    @router.post("/{payment_id}/decide-edit-request", response_model=PaymentRead)
    def decide_edit_request(
        payment_id: int,
        payload: EditRequestDecision,
        db: Session = _DB_DEP,
        actor_id: Optional[int] = _ACTOR_DEP,
    ):
        with transactional(db):
            payment = payment_service.decide_payment_edit_request(
                db,
                direction,
                payment_id,
                approve=payload.decision == "approve",
                actor_id=actor_id,
                reason=payload.reason,
            )
        return payment

    @router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_payment(
        payment_id: int,
        db: Session = _DB_DEP,
        actor_id: Optional[int] = _ACTOR_DEP,
    ):
        with transactional(db):
            payment_service.delete_payment(db, direction, payment_id, actor_id=actor_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/{payment_id}/history", response_model=List[HistoryRead])
    def payment_history(payment_id: int, db: Session = _DB_DEP):
        return payment_service.payment_history(db, direction, payment_id)

    @router.get("/{payment_id}/journals", response_model=List[GlJournalRead])
    def payment_journals(
        payment_id: int,
        include_deleted: bool = Query(False),
        db: Session = _DB_DEP,
    ):
        return payment_service.payment_journals(
            db, direction, payment_id, include_deleted=include_deleted
        )

    return router


outward_router = build_router(PaymentDirection.outward)
inward_router = build_router(PaymentDirection.inward)
