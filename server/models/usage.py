"""Per-user, per-model, per-day usage accumulator."""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class UsageRecord(Base):
    __tablename__ = "usage_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    model_id: Mapped[int] = mapped_column(ForeignKey("chat_models.id", ondelete="CASCADE"))
    day: Mapped[date] = mapped_column(Date)
    request_count: Mapped[int] = mapped_column(Integer, default=0)

    user = relationship("User", back_populates="usage_records")

    __table_args__ = (
        Index("ix_usage_user_model_day", "user_id", "model_id", "day", unique=True),
    )
