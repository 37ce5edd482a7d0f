"""Conversation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from models.user import User
from schemas.chat import ConversationIn, ConversationOut, MessageOut
from services.catalog import get_model
from services.chat import (
    create_conversation,
    get_conversation_messages,
    get_owned_conversation,
    list_conversations,
)
from services.usage import UsageAccountant, get_accountant

router = APIRouter()


@router.get("/", response_model=list[ConversationOut])
def list_user_conversations(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return list_conversations(db, user.id)


@router.post("/", response_model=ConversationOut, status_code=201)
def create_user_conversation(
    payload: ConversationIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    accountant: UsageAccountant = Depends(get_accountant),
):
    model = get_model(db, payload.model_id)
    if not model or not model.is_active:
        raise HTTPException(status_code=404, detail="Model not found")
    if model.requires_vip and not accountant.is_unlimited(user):
        raise HTTPException(status_code=403, detail="This model requires a VIP subscription.")
    return create_conversation(db, user.id, model, payload.title)


@router.get("/{conversation_id}/messages/", response_model=list[MessageOut])
def list_conversation_messages(
    conversation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    conversation = get_owned_conversation(db, conversation_id, user.id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return get_conversation_messages(db, conversation.id)
