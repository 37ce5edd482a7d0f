"""Model catalogue, conversation, and message schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ChatModelOut(BaseModel):
    id: int
    name: str
    display_name: str
    provider: str
    description: str | None = None
    accuracy: int | None = None
    speed: str | None = None
    category: str
    requires_vip: bool
    is_active: bool

    model_config = {"from_attributes": True}


class ChatModelUpdate(BaseModel):
    is_active: bool


class ConversationIn(BaseModel):
    model_id: int
    title: str | None = Field(None, max_length=255)

    model_config = {"protected_namespaces": ()}


class ConversationOut(BaseModel):
    id: int
    user_id: int
    model_id: int
    title: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "protected_namespaces": ()}


class MessageIn(BaseModel):
    conversation_id: int
    content: str = Field(min_length=1)


class MessageOut(BaseModel):
    id: int
    conversation_id: int
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


class UsageOut(BaseModel):
    daily_usage: int
    daily_limit: int | None = None
    unlimited: bool
    remaining: int | None = None
