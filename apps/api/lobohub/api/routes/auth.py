from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from lobohub.api.deps import CurrentUser, DBSession
from lobohub.core.config import settings
from lobohub.core.security import (
    create_access_token,
    hash_password,
    password_needs_rehash,
    validate_password_strength,
    verify_password,
)
from lobohub.models import User
from lobohub.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserOut

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("lobohub.auth")


def user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        family_id=user.family_id,
        created_at=user.created_at,
    )


def _normalize_email(raw: str) -> str:
    return raw.strip().lower()


def _is_locked(user: User, now: datetime) -> bool:
    if user.locked_until is None:
        return False
    locked_until = user.locked_until if user.locked_until.tzinfo is not None else user.locked_until.replace(tzinfo=UTC)
    return locked_until > now


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: DBSession) -> AuthResponse:
    email = _normalize_email(payload.email)
    if "@" not in email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email address")

    existing_user = db.scalar(select(User).where(User.email == email))
    if existing_user is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")

    password_error = validate_password_strength(payload.password)
    if password_error is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=password_error)

    user = User(
        email=email,
        name=payload.name.strip(),
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    db.flush()
    db.commit()
    logger.info("auth.registered", extra={"user_id": user.id})
    return AuthResponse(
        token=create_access_token(user_id=user.id, family_id=None),
        user=user_out(user),
    )


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: DBSession) -> AuthResponse:
    user = db.scalar(select(User).where(User.email == _normalize_email(payload.email)))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    now = datetime.now(UTC)
    if _is_locked(user, now):
        raise HTTPException(status_code=status.HTTP_423_LOCKED, detail="Account temporarily locked")

    if not verify_password(payload.password, user.password_hash):
        user.failed_login_attempts += 1
        if user.failed_login_attempts >= settings.account_lock_max_attempts:
            user.locked_until = now + timedelta(minutes=settings.account_lock_minutes)
            user.failed_login_attempts = 0
            db.commit()
            logger.warning("auth.account_locked", extra={"user_id": user.id})
            raise HTTPException(status_code=status.HTTP_423_LOCKED, detail="Account temporarily locked")
        db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user.failed_login_attempts = 0
    user.locked_until = None
    if password_needs_rehash(user.password_hash):
        user.password_hash = hash_password(payload.password)
    db.commit()
    return AuthResponse(
        token=create_access_token(user_id=user.id, family_id=user.family_id),
        user=user_out(user),
    )


@router.get("/me", response_model=UserOut)
def me(user: CurrentUser) -> UserOut:
    return user_out(user)
