"""Admin dashboard schemas."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class RoleUpdate(BaseModel):
    role: Literal["user", "vip", "admin"]


class StatsOut(BaseModel):
    total_users: int
    vip_users: int
    today_calls: int
    monthly_revenue: Decimal
