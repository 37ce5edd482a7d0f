"""Account endpoints: first-run setup, registration, token exchange, profile."""

from __future__ import annotations

import logging
import uuid

import bcrypt
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from models.user import APIKey, User, UserRole
from schemas.auth import RegisterRequest, TokenRequest, TokenResponse, UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def _verify_password(stored_hash: str, password: str) -> bool:
    """Verify password against stored bcrypt hash."""
    if not stored_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), stored_hash.encode())
    except (ValueError, UnicodeDecodeError):
        return False


def _create_account(db: Session, payload: RegisterRequest, role: UserRole) -> APIKey:
    if db.query(User).filter(User.username == payload.username).first() is not None:
        raise HTTPException(status_code=409, detail="Username already taken.")
    if payload.email and db.query(User).filter(User.email == payload.email).first() is not None:
        raise HTTPException(status_code=409, detail="Email already registered.")

    user = User(
        username=payload.username,
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        password_hash=_hash_password(payload.password),
        role=role.value,
    )
    db.add(user)
    db.flush()

    api_key = APIKey(user_id=user.id, key=str(uuid.uuid4()))
    db.add(api_key)
    db.commit()
    db.refresh(api_key)
    logger.info("Created %s account %s", role.value, user.username)
    return api_key


@router.post("/setup/", response_model=TokenResponse, status_code=201, responses={409: {"description": "Setup already completed"}})
def setup(payload: RegisterRequest, db: Session = Depends(get_db)):
    """Create the first account, which administers the site."""
    if db.query(User).first() is not None:
        raise HTTPException(status_code=409, detail="Setup already completed.")
    api_key = _create_account(db, payload, UserRole.ADMIN)
    return {"key": api_key.key}


@router.post("/register/", response_model=TokenResponse, status_code=201, responses={409: {"description": "User already exists"}})
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    api_key = _create_account(db, payload, UserRole.USER)
    return {"key": api_key.key}


@router.post("/token/", response_model=TokenResponse, responses={401: {"description": "Invalid credentials"}})
def obtain_token(payload: TokenRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == payload.username).first()
    if not user or not _verify_password(user.password_hash, payload.password):
        raise HTTPException(status_code=401, detail="Invalid credentials.")

    api_key = db.query(APIKey).filter(APIKey.user_id == user.id).first()
    if api_key:
        api_key.key = str(uuid.uuid4())
    else:
        api_key = APIKey(user_id=user.id, key=str(uuid.uuid4()))
        db.add(api_key)
    db.commit()
    db.refresh(api_key)
    return {"key": api_key.key}


@router.get("/user/", response_model=UserOut)
def current_user(user: User = Depends(get_current_user)):
    return user
