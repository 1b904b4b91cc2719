from __future__ import annotations

from datetime import UTC, datetime, timedelta
from secrets import choice
from string import ascii_uppercase, digits
from typing import Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from lobohub.core.config import settings

JWT_ISSUER = "lobohub"
_INVITE_ALPHABET = ascii_uppercase + digits

_password_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _password_hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def password_needs_rehash(password_hash: str) -> bool:
    return _password_hasher.check_needs_rehash(password_hash)


def create_access_token(*, user_id: int, family_id: int | None) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "iss": JWT_ISSUER,
        "sub": str(user_id),
        "family_id": family_id,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=settings.access_token_hours)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        issuer=JWT_ISSUER,
    )


def generate_invite_code(length: int | None = None) -> str:
    size = length or settings.invite_code_length
    return "".join(choice(_INVITE_ALPHABET) for _ in range(size))


def validate_password_strength(password: str) -> str | None:
    if len(password) < 8:
        return "Password must be at least 8 characters long"
    if password.isdigit() or password.isalpha():
        return "Password must mix letters and numbers"
    return None
