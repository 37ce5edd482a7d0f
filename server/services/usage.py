"""Daily quota enforcement and per-model usage accounting.

Plain users (and subscribers whose subscription has lapsed) get
``daily_limit`` billable chat turns per local calendar day. Administrators
and active subscribers are unlimited and leave no counters behind.

A user's ``daily_usage`` is only meaningful relative to ``last_usage_reset``:
when the reset stamp precedes today's midnight the stored value reads as 0,
and the next consumption rewrites both columns in one statement. Consumption
is a single conditional UPDATE, so two concurrent requests can never both
take the last slot. A slot taken for a turn whose provider call then failed
is handed back with ``release``; net usage therefore counts successes only.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable

from sqlalchemy import case, or_, update
from sqlalchemy.orm import Session

from config import settings
from models.usage import UsageRecord
from models.user import User

logger = logging.getLogger(__name__)


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def is_stale(last_reset: datetime | None, now: datetime) -> bool:
    return last_reset is None or last_reset < start_of_day(now)


class UsageAccountant:
    def __init__(self, daily_limit: int = 10, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self.daily_limit = daily_limit
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def is_unlimited(self, user: User) -> bool:
        return user.has_unlimited_usage(self.now())

    def current_daily_usage(self, db: Session, user_id: int) -> int:
        user = db.get(User, user_id)
        if user is None:
            return 0
        if is_stale(user.last_usage_reset, self.now()):
            return 0
        return user.daily_usage

    def check_and_consume(
        self, db: Session, user_id: int, model_id: int, *, now: datetime | None = None
    ) -> bool:
        """Take one slot of today's quota for *user_id*. False when exhausted.

        *now* defaults to the clock. Callers that may later ``release`` the
        slot pass it so the refund targets the same day.
        """
        user = db.get(User, user_id)
        if user is None:
            return False
        now = now or self.now()
        if user.has_unlimited_usage(now):
            return True

        stale = or_(User.last_usage_reset.is_(None), User.last_usage_reset < start_of_day(now))
        stmt = (
            update(User)
            .where(User.id == user_id, or_(stale, User.daily_usage < self.daily_limit))
            .values(
                daily_usage=case((stale, 1), else_=User.daily_usage + 1),
                last_usage_reset=case((stale, now), else_=User.last_usage_reset),
            )
            .execution_options(synchronize_session=False)
        )
        if db.execute(stmt).rowcount != 1:
            logger.info("User %s exhausted the daily limit of %d", user_id, self.daily_limit)
            return False

        self._bump_model_record(db, user_id, model_id, now.date(), 1)
        db.commit()
        db.expire(user)
        return True

    def release(
        self, db: Session, user_id: int, model_id: int, *, consumed_at: datetime | None = None
    ) -> None:
        """Return a slot for a turn that produced no billable reply.

        The slot is refunded only while the counter still belongs to the day
        of *consumed_at* (default: today); a counter that has rolled over
        since is left alone.
        """
        user = db.get(User, user_id)
        if user is None:
            return
        if user.has_unlimited_usage(self.now()):
            return

        consumed_at = consumed_at or self.now()
        day_start = start_of_day(consumed_at)
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.last_usage_reset >= day_start,
                User.last_usage_reset < day_start + timedelta(days=1),
                User.daily_usage > 0,
            )
            .values(daily_usage=User.daily_usage - 1)
            .execution_options(synchronize_session=False)
        )
        if db.execute(stmt).rowcount == 1:
            self._bump_model_record(db, user_id, model_id, consumed_at.date(), -1)
        db.commit()
        db.expire(user)

    def summary(self, db: Session, user: User) -> dict:
        used = self.current_daily_usage(db, user.id)
        unlimited = self.is_unlimited(user)
        return {
            "daily_usage": used,
            "daily_limit": None if unlimited else self.daily_limit,
            "unlimited": unlimited,
            "remaining": None if unlimited else max(self.daily_limit - used, 0),
        }

    # ------------------------------------------------------------------
    # Per-model accumulator (reporting only, never gates access)
    # ------------------------------------------------------------------

    def _bump_model_record(self, db: Session, user_id: int, model_id: int, day: date, delta: int) -> None:
        key = (
            UsageRecord.user_id == user_id,
            UsageRecord.model_id == model_id,
            UsageRecord.day == day,
        )
        if delta < 0:
            db.execute(
                update(UsageRecord)
                .where(*key, UsageRecord.request_count > 0)
                .values(request_count=UsageRecord.request_count + delta)
                .execution_options(synchronize_session=False)
            )
            return

        dialect = db.get_bind().dialect.name
        if dialect in ("sqlite", "postgresql"):
            if dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert
            else:
                from sqlalchemy.dialects.postgresql import insert
            stmt = insert(UsageRecord).values(
                user_id=user_id, model_id=model_id, day=day, request_count=delta
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "model_id", "day"],
                set_={"request_count": UsageRecord.request_count + delta},
            )
            db.execute(stmt)
            return

        result = db.execute(
            update(UsageRecord)
            .where(*key)
            .values(request_count=UsageRecord.request_count + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.add(UsageRecord(user_id=user_id, model_id=model_id, day=day, request_count=delta))
            db.flush()


def get_accountant() -> UsageAccountant:
    """FastAPI dependency: accountant using the configured free-tier limit."""
    return UsageAccountant(settings.FREE_DAILY_LIMIT)
