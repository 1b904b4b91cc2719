from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from lobohub.api.deps import CurrentUser, DBSession
from lobohub.api.routes.auth import user_out
from lobohub.core.security import create_access_token, generate_invite_code
from lobohub.models import Family, User
from lobohub.schemas.families import (
    FamilyCreateRequest,
    FamilyJoinRequest,
    FamilyMembersResponse,
    FamilyMembershipResponse,
    FamilyOut,
)
from lobohub.services.achievements import AchievementService

router = APIRouter(prefix="/api/families", tags=["families"])
logger = logging.getLogger("lobohub.families")

MAX_INVITE_CODE_ATTEMPTS = 5


def family_out(family: Family) -> FamilyOut:
    return FamilyOut(
        id=family.id,
        name=family.name,
        invite_code=family.invite_code,
        created_at=family.created_at,
    )


def _membership_response(family: Family, user: User) -> FamilyMembershipResponse:
    return FamilyMembershipResponse(
        family=family_out(family),
        user=user_out(user),
        token=create_access_token(user_id=user.id, family_id=family.id),
    )


@router.post("", response_model=FamilyMembershipResponse, status_code=status.HTTP_201_CREATED)
def create_family(payload: FamilyCreateRequest, db: DBSession, user: CurrentUser) -> FamilyMembershipResponse:
    if user.family_id is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already belongs to a family")

    family: Family | None = None
    for _ in range(MAX_INVITE_CODE_ATTEMPTS):
        candidate = Family(name=payload.name.strip(), invite_code=generate_invite_code())
        try:
            with db.begin_nested():
                db.add(candidate)
        except IntegrityError:
            continue
        family = candidate
        break
    if family is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Could not allocate invite code")

    user.family_id = family.id
    AchievementService(db).get_or_create_family_level(family.id)
    db.commit()
    logger.info("family.created", extra={"family_id": family.id, "user_id": user.id})
    return _membership_response(family, user)


@router.post("/join", response_model=FamilyMembershipResponse)
def join_family(payload: FamilyJoinRequest, db: DBSession, user: CurrentUser) -> FamilyMembershipResponse:
    family = db.scalar(select(Family).where(Family.invite_code == payload.invite_code.strip().upper()))
    if family is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid invite code")
    if user.family_id is not None and user.family_id != family.id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already belongs to a family")

    user.family_id = family.id
    db.commit()
    logger.info("family.joined", extra={"family_id": family.id, "user_id": user.id})
    return _membership_response(family, user)


@router.get("/{family_id}/members", response_model=FamilyMembersResponse)
def list_members(family_id: int, db: DBSession, user: CurrentUser) -> FamilyMembersResponse:
    if user.family_id != family_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Family not found")

    members = db.scalars(select(User).where(User.family_id == family_id).order_by(User.id.asc())).all()
    return FamilyMembersResponse(family_id=family_id, members=[user_out(member) for member in members])
