from __future__ import annotations

import pytest
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from lobohub.api.deps import user_id_from_token
from lobohub.api.routes.auth import login, register
from lobohub.api.routes.families import create_family, join_family
from lobohub.core.config import settings
from lobohub.core.security import (
    create_access_token,
    decode_token,
    generate_invite_code,
    validate_password_strength,
    verify_password,
)
from lobohub.models import FamilyLevel, User
from lobohub.schemas.auth import LoginRequest, RegisterRequest
from lobohub.schemas.families import FamilyCreateRequest, FamilyJoinRequest


def _register(db: Session, email: str = "Ana@Example.com") -> User:
    register(payload=RegisterRequest(name="Ana", email=email, password="lobo1234"), db=db)
    user = db.scalar(select(User).where(User.email == email.lower()))
    assert user is not None
    return user


def test_register_normalizes_email_and_rejects_duplicates(db: Session) -> None:
    response = register(payload=RegisterRequest(name="Ana", email=" Ana@Example.com ", password="lobo1234"), db=db)

    assert response.user.email == "ana@example.com"
    assert response.user.family_id is None
    assert decode_token(response.token)["sub"] == str(response.user.id)

    with pytest.raises(HTTPException) as exc_info:
        register(payload=RegisterRequest(name="Ana", email="ana@example.com", password="lobo1234"), db=db)
    assert exc_info.value.status_code == 409


def test_weak_password_is_rejected() -> None:
    assert validate_password_strength("abcdefgh") is not None
    assert validate_password_strength("12345678") is not None
    assert validate_password_strength("lobo1234") is None


def test_login_locks_account_after_repeated_failures(db: Session) -> None:
    user = _register(db)

    for _ in range(settings.account_lock_max_attempts - 1):
        with pytest.raises(HTTPException) as exc_info:
            login(payload=LoginRequest(email="ana@example.com", password="wrong-pass1"), db=db)
        assert exc_info.value.status_code == 401

    with pytest.raises(HTTPException) as exc_info:
        login(payload=LoginRequest(email="ana@example.com", password="wrong-pass1"), db=db)
    assert exc_info.value.status_code == 423
    assert user.locked_until is not None

    with pytest.raises(HTTPException) as exc_info:
        login(payload=LoginRequest(email="ana@example.com", password="lobo1234"), db=db)
    assert exc_info.value.status_code == 423


def test_create_and_join_family(db: Session) -> None:
    owner = _register(db)
    created = create_family(payload=FamilyCreateRequest(name="Lobo"), db=db, user=owner)

    assert owner.family_id == created.family.id
    assert len(created.family.invite_code) == settings.invite_code_length
    assert decode_token(created.token)["family_id"] == created.family.id
    assert db.get(FamilyLevel, created.family.id) is not None

    partner = _register(db, email="bea@example.com")
    joined = join_family(
        payload=FamilyJoinRequest(invite_code=created.family.invite_code.lower()),
        db=db,
        user=partner,
    )
    assert joined.family.id == created.family.id
    assert partner.family_id == created.family.id

    with pytest.raises(HTTPException) as exc_info:
        create_family(payload=FamilyCreateRequest(name="Again"), db=db, user=owner)
    assert exc_info.value.status_code == 409


def test_invite_codes_use_uppercase_alphabet() -> None:
    code = generate_invite_code(12)
    assert len(code) == 12
    assert code == code.upper()
    assert code.isalnum()


def test_access_token_subject_is_parsed() -> None:
    assert user_id_from_token(create_access_token(user_id=7, family_id=3)) == 7

    with pytest.raises(HTTPException) as exc_info:
        user_id_from_token("not-a-token")
    assert exc_info.value.status_code == 401


def test_verify_password_tolerates_malformed_hash() -> None:
    assert verify_password("lobo1234", "x") is False
