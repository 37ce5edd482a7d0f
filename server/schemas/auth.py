"""Auth and user profile schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class TokenRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    key: str


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=4)
    email: str | None = Field(None, max_length=255)
    first_name: str = ""
    last_name: str = ""


class UserOut(BaseModel):
    id: int
    username: str
    email: str | None = None
    first_name: str = ""
    last_name: str = ""
    profile_image_url: str = ""
    role: str
    vip_expires_at: datetime | None = None
    daily_usage: int = 0
    last_usage_reset: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
