"""Root conftest: shared fixtures for all server tests."""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure server/ is on sys.path
_server_dir = str(Path(__file__).resolve().parent)
if _server_dir not in sys.path:
    sys.path.insert(0, _server_dir)

import bcrypt
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
import models  # noqa: F401  register all models with Base

# In-memory SQLite; StaticPool makes every connection share one database
TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(TEST_ENGINE, "connect")
def _enable_foreign_keys(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSession = sessionmaker(bind=TEST_ENGINE, autoflush=False, expire_on_commit=False)


@pytest.fixture(autouse=True)
def _setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db():
    """Yield a test database session."""
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


def make_user(db, username: str, role: str = "user", **fields):
    from models.user import User

    user = User(
        username=username,
        password_hash=bcrypt.hashpw(b"testpass", bcrypt.gensalt(rounds=4)).decode(),
        role=role,
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_api_key(db, user):
    from models.user import APIKey

    key = APIKey(user_id=user.id)
    db.add(key)
    db.commit()
    db.refresh(key)
    return key


@pytest.fixture
def user(db):
    return make_user(db, "testuser")


@pytest.fixture
def vip_user(db):
    from datetime import datetime, timedelta

    return make_user(db, "vipuser", role="vip", vip_expires_at=datetime.now() + timedelta(days=30))


@pytest.fixture
def admin_user(db):
    return make_user(db, "adminuser", role="admin")


@pytest.fixture
def api_key(db, user):
    return make_api_key(db, user)


@pytest.fixture
def admin_key(db, admin_user):
    return make_api_key(db, admin_user)


@pytest.fixture
def chat_model(db):
    from models.chat_model import ChatModel

    model = ChatModel(
        name="gpt-4o-mini",
        display_name="Dragon GPT-4o Mini",
        provider="OpenAI",
        category="text",
        requires_vip=False,
        is_active=True,
    )
    db.add(model)
    db.commit()
    db.refresh(model)
    return model


@pytest.fixture
def vip_model(db):
    from models.chat_model import ChatModel

    model = ChatModel(
        name="gemini",
        display_name="Qilin Gemini",
        provider="Google",
        category="multimodal",
        requires_vip=True,
        is_active=True,
    )
    db.add(model)
    db.commit()
    db.refresh(model)
    return model


@pytest.fixture
def conversation(db, user, chat_model):
    from models.conversation import Conversation

    conv = Conversation(user_id=user.id, model_id=chat_model.id, title="First chat")
    db.add(conv)
    db.commit()
    db.refresh(conv)
    return conv
