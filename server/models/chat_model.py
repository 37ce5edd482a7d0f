"""Chat model catalogue."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class ChatModel(Base):
    """A selectable model. Reference data: only ``is_active`` changes after creation."""

    __tablename__ = "chat_models"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Identifier matched against the provider registry (exact, case-sensitive)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    display_name: Mapped[str] = mapped_column(String(150))
    provider: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    accuracy: Mapped[int | None] = mapped_column(Integer, nullable=True)
    speed: Mapped[str | None] = mapped_column(String(20), nullable=True)  # fast | medium | slow
    category: Mapped[str] = mapped_column(String(30), default="text")  # text | image | code | multimodal
    requires_vip: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<ChatModel {self.name}>"
