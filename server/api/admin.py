"""Admin endpoints: user management, statistics and model availability."""

from __future__ import annotations

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from auth import require_admin
from config import settings
from database import get_db
from models.user import User, UserRole
from schemas.admin import RoleUpdate, StatsOut
from schemas.auth import UserOut
from schemas.chat import ChatModelOut, ChatModelUpdate
from services.admin import (
    delete_user,
    get_user_stats,
    list_users,
    set_model_active,
    update_user_role,
)

router = APIRouter()


@router.get("/users/", response_model=list[UserOut])
def list_all_users(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return list_users(db)


@router.get("/stats/", response_model=StatsOut)
def get_stats(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return get_user_stats(db)


@router.put("/users/{user_id}/role/")
def update_role(
    user_id: int,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    vip_expires_at = None
    if payload.role == UserRole.VIP.value:
        vip_expires_at = datetime.now() + timedelta(days=settings.VIP_DURATION_DAYS)
    if not update_user_role(db, user_id, payload.role, vip_expires_at):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User role updated successfully"}


@router.delete("/users/{user_id}/")
def remove_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="Administrators cannot delete themselves.")
    if not delete_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted successfully"}


@router.patch("/models/{model_id}/", response_model=ChatModelOut)
def update_model(
    model_id: int,
    payload: ChatModelUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    model = set_model_active(db, model_id, payload.is_active)
    if not model:
        raise HTTPException(status_code=404, detail="Model not found")
    return model
