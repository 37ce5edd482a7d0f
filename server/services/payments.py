"""Simulated subscription payments.

No real payment provider is contacted: a payment is recorded as pending and
settled by a background task shortly after, which upgrades the payer.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta

from sqlalchemy.orm import Session, sessionmaker

from config import settings
from models.payment import Payment
from services.admin import update_user_role

logger = logging.getLogger(__name__)


def create_payment(db: Session, user_id: int, amount: str, method: str) -> Payment:
    payment = Payment(
        user_id=user_id,
        amount=amount,
        method=method,
        status="pending",
        expires_at=datetime.now() + timedelta(days=settings.VIP_DURATION_DAYS),
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def list_payments(db: Session, user_id: int) -> list[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.user_id == user_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def settle_payment(payment_id: int, session_factory: sessionmaker, delay: float | None = None) -> None:
    """Background task: mark the payment completed and grant the subscription."""
    delay = settings.PAYMENT_SETTLE_DELAY_SECONDS if delay is None else delay
    if delay > 0:
        time.sleep(delay)

    with session_factory() as db:
        payment = db.get(Payment, payment_id)
        if payment is None:
            logger.warning("Payment %s vanished before settlement", payment_id)
            return
        if payment.status != "pending":
            return
        payment.status = "completed"
        db.commit()
        update_user_role(db, payment.user_id, "vip", payment.expires_at)
        logger.info("Payment %s settled, user %s is vip until %s", payment_id, payment.user_id, payment.expires_at)
