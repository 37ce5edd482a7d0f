"""Subscription payment endpoints (simulated provider)."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session, sessionmaker

from auth import get_current_user
from database import get_db, get_session_factory
from models.user import User
from schemas.payment import PaymentIn, PaymentOut
from services.payments import create_payment, list_payments, settle_payment

router = APIRouter()


@router.post("/", response_model=PaymentOut, status_code=201)
def create_user_payment(
    payload: PaymentIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    payment = create_payment(db, user.id, payload.amount, payload.method)
    background_tasks.add_task(settle_payment, payment.id, session_factory)
    return payment


@router.get("/", response_model=list[PaymentOut])
def list_user_payments(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return list_payments(db, user.id)
