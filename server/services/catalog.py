"""Chat model catalogue: queries and first-run seeding."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from models.chat_model import ChatModel

logger = logging.getLogger(__name__)

# Models without a registered provider are always answered by the fallback generator.
DEFAULT_MODELS: list[dict] = [
    {
        "name": "gpt-4o-mini",
        "display_name": "Dragon GPT-4o Mini",
        "provider": "OpenAI",
        "description": "Fast general-purpose model for reasoning, writing, and code.",
        "accuracy": 92,
        "speed": "fast",
        "category": "text",
        "requires_vip": False,
    },
    {
        "name": "claude-3-haiku",
        "display_name": "Phoenix Claude Haiku",
        "provider": "Anthropic",
        "description": "Safety-focused assistant for careful analysis and research.",
        "accuracy": 93,
        "speed": "fast",
        "category": "text",
        "requires_vip": False,
    },
    {
        "name": "deepseek-chat",
        "display_name": "DeepSeek Chat",
        "provider": "DeepSeek",
        "description": "Strong bilingual chat model with solid reasoning.",
        "accuracy": 91,
        "speed": "fast",
        "category": "text",
        "requires_vip": False,
    },
    {
        "name": "qwen2.5-72b",
        "display_name": "Qwen 2.5",
        "provider": "Alibaba Cloud",
        "description": "Large open-weight model with long-context understanding.",
        "accuracy": 92,
        "speed": "medium",
        "category": "text",
        "requires_vip": True,
    },
    {
        "name": "glm-4-9b",
        "display_name": "Zhipu GLM-4",
        "provider": "Zhipu AI",
        "description": "Compact bilingual model tuned for dialogue.",
        "accuracy": 88,
        "speed": "fast",
        "category": "text",
        "requires_vip": False,
    },
    {
        "name": "llama3.1-8b",
        "display_name": "Llama 3.1",
        "provider": "Meta",
        "description": "Open model served through the Hugging Face router.",
        "accuracy": 85,
        "speed": "fast",
        "category": "code",
        "requires_vip": False,
    },
    {
        "name": "gemini",
        "display_name": "Qilin Gemini",
        "provider": "Google",
        "description": "Multimodal model for text, image, and audio tasks.",
        "accuracy": 91,
        "speed": "fast",
        "category": "multimodal",
        "requires_vip": True,
    },
    {
        "name": "dall-e",
        "display_name": "Magic Brush DALL-E",
        "provider": "OpenAI",
        "description": "Text-to-image generation for artwork and concept images.",
        "accuracy": 88,
        "speed": "medium",
        "category": "image",
        "requires_vip": True,
    },
    {
        "name": "midjourney",
        "display_name": "Dreamland Midjourney",
        "provider": "Midjourney",
        "description": "Professional image generation for imaginative artwork.",
        "accuracy": 92,
        "speed": "slow",
        "category": "image",
        "requires_vip": True,
    },
]


def get_active_models(db: Session) -> list[ChatModel]:
    return (
        db.query(ChatModel)
        .filter(ChatModel.is_active == True)  # noqa: E712
        .order_by(ChatModel.name)
        .all()
    )


def get_model(db: Session, model_id: int) -> ChatModel | None:
    return db.get(ChatModel, model_id)


def seed_default_models(db: Session) -> int:
    """Insert DEFAULT_MODELS when the catalogue is empty. Returns rows inserted."""
    if db.query(ChatModel).first() is not None:
        return 0
    db.add_all(ChatModel(is_active=True, **entry) for entry in DEFAULT_MODELS)
    db.commit()
    logger.info("Seeded %d chat models", len(DEFAULT_MODELS))
    return len(DEFAULT_MODELS)
