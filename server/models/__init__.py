"""SQLAlchemy models, re-exported."""

from models.user import APIKey, User, UserRole  # noqa: F401
from models.chat_model import ChatModel  # noqa: F401
from models.conversation import Conversation, Message  # noqa: F401
from models.usage import UsageRecord  # noqa: F401
from models.payment import Payment  # noqa: F401
