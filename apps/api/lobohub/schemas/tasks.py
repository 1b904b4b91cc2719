from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from lobohub.models import TaskStatus
from lobohub.schemas.achievements import BadgeOut


class TaskCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    assigned_to_user_id: int | None = Field(default=None, alias="assignedToUserId")
    category: str | None = None
    due_date: datetime | None = Field(default=None, alias="dueDate")


class TaskUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus | None = None
    assigned_to_user_id: int | None = Field(default=None, alias="assignedToUserId")
    category: str | None = None
    due_date: datetime | None = Field(default=None, alias="dueDate")


class TaskOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    family_id: int = Field(alias="familyId")
    user_id: int = Field(alias="userId")
    title: str
    description: str | None
    status: TaskStatus
    assigned_to_user_id: int | None = Field(alias="assignedToUserId")
    category: str | None
    due_date: datetime | None = Field(alias="dueDate")
    completed_at: datetime | None = Field(alias="completedAt")
    completed_by_user_id: int | None = Field(alias="completedByUserId")
    new_achievements: list[BadgeOut] = Field(default_factory=list, alias="newAchievements")
