from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWTError
from sqlalchemy.orm import Session

from lobohub.core.security import decode_token
from lobohub.db.session import SessionLocal
from lobohub.models import Family, User
from lobohub.services.achievements import AchievementService

auth_scheme = HTTPBearer(auto_error=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


DBSession = Annotated[Session, Depends(get_db)]


def get_achievement_service(db: DBSession) -> AchievementService:
    return AchievementService(db)


AchievementSvc = Annotated[AchievementService, Depends(get_achievement_service)]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def user_id_from_token(token: str) -> int:
    try:
        payload = decode_token(token)
    except PyJWTError as exc:
        raise _unauthorized("Invalid token") from exc

    if payload.get("type") != "access":
        raise _unauthorized("Invalid access token")
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.isdigit():
        raise _unauthorized("Invalid token subject")
    return int(subject)


def get_current_user(
    db: DBSession,
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(auth_scheme)],
) -> User:
    if credentials is None:
        raise _unauthorized("Missing authorization token")

    # Family membership is read from the row, not the token, so joining takes effect at once.
    user = db.get(User, user_id_from_token(credentials.credentials))
    if user is None:
        raise _unauthorized("User not found")
    request.state.user_id = user.id
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_current_family(db: DBSession, request: Request, user: CurrentUser) -> Family:
    family = db.get(Family, user.family_id) if user.family_id is not None else None
    if family is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User does not belong to a family",
        )
    request.state.family_id = family.id
    return family


CurrentFamily = Annotated[Family, Depends(get_current_family)]
