from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from lobohub.schemas.achievements import BadgeOut


class ListCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    category: str | None = None
    template: str | None = Field(default=None, max_length=50)


class ListOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    family_id: int = Field(alias="familyId")
    user_id: int = Field(alias="userId")
    title: str
    description: str | None
    category: str | None
    template: str | None
    completed_at: datetime | None = Field(alias="completedAt")
    new_achievements: list[BadgeOut] = Field(default_factory=list, alias="newAchievements")


class ListItemCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    quantity: str | None = None
    notes: str | None = None
    category: str | None = None


class ListItemCreateForListRequest(ListItemCreateRequest):
    model_config = ConfigDict(populate_by_name=True)

    list_id: int = Field(alias="listId")


class ListItemUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    quantity: str | None = None
    notes: str | None = None
    category: str | None = None
    completed: bool | None = None


class ListItemOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    list_id: int = Field(alias="listId")
    title: str
    quantity: str | None
    notes: str | None
    category: str | None
    completed: bool
    new_achievements: list[BadgeOut] = Field(default_factory=list, alias="newAchievements")
