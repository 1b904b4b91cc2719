from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    email: str
    name: str
    family_id: int | None = Field(alias="familyId")
    created_at: datetime | None = Field(default=None, alias="createdAt")


class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserOut
