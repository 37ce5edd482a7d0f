"""Chat message and usage endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from logging_config import conversation_id_var, user_id_var
from models.user import User
from schemas.chat import MessageIn, MessageOut, UsageOut
from services.chat import get_owned_conversation, run_chat_turn
from services.dispatcher import ModelDispatcher, get_dispatcher
from services.usage import UsageAccountant, get_accountant

router = APIRouter()

QUOTA_EXCEEDED_DETAIL = "Daily usage limit exceeded. Upgrade to VIP for unlimited access."


@router.post(
    "/",
    response_model=list[MessageOut],
    responses={429: {"description": "Daily usage limit exceeded"}},
)
def send_message(
    payload: MessageIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    dispatcher: ModelDispatcher = Depends(get_dispatcher),
    accountant: UsageAccountant = Depends(get_accountant),
):
    """Post a user message and return it together with the assistant reply."""
    conversation = get_owned_conversation(db, payload.conversation_id, user.id)
    if not conversation:
        raise HTTPException(status_code=403, detail="Access denied")
    if conversation.model.requires_vip and not accountant.is_unlimited(user):
        raise HTTPException(status_code=403, detail="This model requires a VIP subscription.")

    user_token = user_id_var.set(str(user.id))
    conv_token = conversation_id_var.set(str(conversation.id))
    try:
        turn = run_chat_turn(
            db, user, conversation, payload.content,
            dispatcher=dispatcher, accountant=accountant,
        )
    finally:
        conversation_id_var.reset(conv_token)
        user_id_var.reset(user_token)

    if turn is None:
        raise HTTPException(status_code=429, detail=QUOTA_EXCEEDED_DETAIL)
    return [turn.user_message, turn.assistant_message]


usage_router = APIRouter(tags=["usage"])


@usage_router.get("/", response_model=UsageOut)
def get_usage(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    accountant: UsageAccountant = Depends(get_accountant),
):
    return accountant.summary(db, user)
