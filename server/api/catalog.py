"""Public chat model catalogue."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from schemas.chat import ChatModelOut
from services.catalog import get_active_models, get_model

router = APIRouter()


@router.get("/", response_model=list[ChatModelOut])
def list_models(db: Session = Depends(get_db)):
    return get_active_models(db)


@router.get("/{model_id}/", response_model=ChatModelOut)
def get_model_detail(model_id: int, db: Session = Depends(get_db)):
    model = get_model(db, model_id)
    if not model:
        raise HTTPException(status_code=404, detail="Model not found")
    return model
