"""Administrative user management and dashboard statistics."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from models.chat_model import ChatModel
from models.payment import Payment
from models.usage import UsageRecord
from models.user import User, UserRole
from services.usage import start_of_day

logger = logging.getLogger(__name__)


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def update_user_role(db: Session, user_id: int, role: str, vip_expires_at: datetime | None = None) -> bool:
    """Set *role*; the expiry only sticks for vip. Returns False for unknown users."""
    user = db.get(User, user_id)
    if user is None:
        return False
    user.role = UserRole(role).value
    user.vip_expires_at = vip_expires_at if user.role == UserRole.VIP.value else None
    db.commit()
    logger.info("User %s role set to %s", user_id, user.role)
    return True


def delete_user(db: Session, user_id: int) -> bool:
    user = db.get(User, user_id)
    if user is None:
        return False
    db.delete(user)
    db.commit()
    logger.info("Deleted user %s", user_id)
    return True


def set_model_active(db: Session, model_id: int, is_active: bool) -> ChatModel | None:
    model = db.get(ChatModel, model_id)
    if model is None:
        return None
    model.is_active = is_active
    db.commit()
    return model


def _sum_amounts(amounts) -> Decimal:
    total = Decimal("0")
    for amount in amounts:
        try:
            total += Decimal(amount)
        except (InvalidOperation, TypeError):
            logger.warning("Skipping unparseable payment amount %r", amount)
    return total


def get_user_stats(db: Session, now: datetime | None = None) -> dict:
    now = now or datetime.now()
    today = start_of_day(now)
    month_start = today.replace(day=1)

    total_users = db.query(func.count(User.id)).scalar() or 0
    vip_users = (
        db.query(func.count(User.id))
        .filter(
            User.role == UserRole.VIP.value,
            or_(User.vip_expires_at.is_(None), User.vip_expires_at > now),
        )
        .scalar()
        or 0
    )
    today_calls = (
        db.query(func.coalesce(func.sum(UsageRecord.request_count), 0))
        .filter(UsageRecord.day == today.date())
        .scalar()
    )
    completed = (
        db.query(Payment.amount)
        .filter(Payment.status == "completed", Payment.created_at >= month_start)
        .all()
    )

    return {
        "total_users": total_users,
        "vip_users": vip_users,
        "today_calls": int(today_calls or 0),
        "monthly_revenue": _sum_amounts(row[0] for row in completed),
    }
