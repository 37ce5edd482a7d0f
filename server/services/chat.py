"""Conversation persistence and the quota-checked chat turn."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from models.chat_model import ChatModel
from models.conversation import Conversation, Message
from models.user import User
from services.dispatcher import DispatchResult, ModelDispatcher
from services.usage import UsageAccountant

logger = logging.getLogger(__name__)


def list_conversations(db: Session, user_id: int) -> list[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
        .all()
    )


def get_owned_conversation(db: Session, conversation_id: int, user_id: int) -> Conversation | None:
    return (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
        .first()
    )


def create_conversation(db: Session, user_id: int, model: ChatModel, title: str | None = None) -> Conversation:
    conversation = Conversation(user_id=user_id, model_id=model.id, title=title)
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation


def add_message(db: Session, conversation: Conversation, role: str, content: str) -> Message:
    """Persist a message and bump the conversation's ``updated_at``."""
    now = datetime.now()
    message = Message(conversation_id=conversation.id, role=role, content=content, created_at=now)
    db.add(message)
    conversation.updated_at = now
    db.commit()
    db.refresh(message)
    return message


def get_conversation_messages(db: Session, conversation_id: int) -> list[Message]:
    return (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.created_at, Message.id)
        .all()
    )


def build_history(messages: list[Message]) -> list[dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]


@dataclass
class ChatTurn:
    user_message: Message
    assistant_message: Message
    result: DispatchResult


def run_chat_turn(
    db: Session,
    user: User,
    conversation: Conversation,
    content: str,
    *,
    dispatcher: ModelDispatcher,
    accountant: UsageAccountant,
) -> ChatTurn | None:
    """Send *content* to the conversation's model.

    Returns None, persisting nothing, when the user's daily quota is spent.
    A failed provider call still yields an assistant (fallback) message but
    its quota slot is released. Any error raised after the slot was taken
    releases it before propagating.
    """
    consumed_at = accountant.now()
    if not accountant.check_and_consume(db, user.id, conversation.model_id, now=consumed_at):
        return None

    released = False
    try:
        user_message = add_message(db, conversation, "user", content)
        history = build_history(get_conversation_messages(db, conversation.id))

        result = dispatcher.dispatch(conversation.model, history)
        if result.failed:
            accountant.release(db, user.id, conversation.model_id, consumed_at=consumed_at)
            released = True
            logger.info("Released quota slot after failed call to %s", conversation.model.name)

        assistant_message = add_message(db, conversation, "assistant", result.content)
    except BaseException:
        db.rollback()
        if not released:
            accountant.release(db, user.id, conversation.model_id, consumed_at=consumed_at)
            logger.warning("Released quota slot for user %s after an aborted chat turn", user.id)
        raise

    return ChatTurn(user_message=user_message, assistant_message=assistant_message, result=result)
