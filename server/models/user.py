"""User and API key models."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class UserRole(str, enum.Enum):
    """Account tiers: plain users, paying subscribers, administrators."""

    USER = "user"
    VIP = "vip"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(150), unique=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), default="")
    first_name: Mapped[str] = mapped_column(String(150), default="")
    last_name: Mapped[str] = mapped_column(String(150), default="")
    profile_image_url: Mapped[str] = mapped_column(String(500), default="")

    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value)
    vip_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Meaningful only relative to last_usage_reset; see services.usage
    daily_usage: Mapped[int] = mapped_column(Integer, default=0)
    last_usage_reset: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    api_key: Mapped[APIKey | None] = relationship(
        "APIKey", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    conversations: Mapped[list] = relationship(
        "Conversation", back_populates="user", cascade="all, delete-orphan"
    )
    payments: Mapped[list] = relationship(
        "Payment", back_populates="user", cascade="all, delete-orphan"
    )
    usage_records: Mapped[list] = relationship(
        "UsageRecord", back_populates="user", cascade="all, delete-orphan"
    )

    def is_subscription_active(self, now: datetime) -> bool:
        """A vip with no expiry is an open-ended subscription."""
        if self.role != UserRole.VIP.value:
            return False
        return self.vip_expires_at is None or self.vip_expires_at > now

    def has_unlimited_usage(self, now: datetime) -> bool:
        return self.role == UserRole.ADMIN.value or self.is_subscription_active(now)

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


class APIKey(Base):
    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
    )
    key: Mapped[str] = mapped_column(String(36), default=lambda: str(uuid.uuid4()), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    user: Mapped[User] = relationship("User", back_populates="api_key")

    def __repr__(self):
        return f"<APIKey for user_id={self.user_id}>"
