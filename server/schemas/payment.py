"""Payment schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Literal

from pydantic import BaseModel, field_validator


class PaymentIn(BaseModel):
    amount: str
    method: Literal["alipay", "wechat"]

    @field_validator("amount")
    @classmethod
    def _positive_decimal(cls, v: str) -> str:
        try:
            value = Decimal(v)
        except InvalidOperation:
            raise ValueError("amount must be a decimal number")
        if not value.is_finite() or value <= 0:
            raise ValueError("amount must be positive")
        return v


class PaymentOut(BaseModel):
    id: int
    user_id: int
    amount: str
    method: str
    status: str
    expires_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}
