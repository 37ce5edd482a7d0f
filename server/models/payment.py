"""Payment records for subscription purchases."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    # Decimal string, summed with Decimal in services.admin
    amount: Mapped[str] = mapped_column(String(20))
    method: Mapped[str] = mapped_column(String(20))  # alipay | wechat
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending | completed | failed
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    user = relationship("User", back_populates="payments")
