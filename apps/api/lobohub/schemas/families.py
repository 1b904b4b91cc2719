from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from lobohub.schemas.auth import UserOut


class FamilyCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class FamilyJoinRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invite_code: str = Field(alias="inviteCode", min_length=1)


class FamilyOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    invite_code: str = Field(alias="inviteCode")
    created_at: datetime | None = Field(default=None, alias="createdAt")


class FamilyMembershipResponse(BaseModel):
    family: FamilyOut
    user: UserOut
    token: str


class FamilyMembersResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    family_id: int = Field(alias="familyId")
    members: list[UserOut]
