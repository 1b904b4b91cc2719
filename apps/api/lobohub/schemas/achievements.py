from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lobohub.services.achievement_system import AchievementAction, Badge, BadgeCategory, BadgeRarity


class RequirementOut(BaseModel):
    type: str
    target: int
    condition: str
    timeframe: str | None = None


class BadgeOut(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    points: int
    requirements: RequirementOut
    rarity: BadgeRarity

    @classmethod
    def from_badge(cls, badge: Badge) -> "BadgeOut":
        return cls.model_validate(badge.to_dict())


class BadgeListResponse(BaseModel):
    badges: list[BadgeOut]


class FamilyLevelOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    family_id: int = Field(alias="familyId")
    level: int
    total_points: int = Field(alias="totalPoints")
    current_level_points: int = Field(alias="currentLevelPoints")
    points_to_next_level: int = Field(alias="pointsToNextLevel")


class FamilyAchievementOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    badge_id: str = Field(alias="badgeId")
    unlocked_by: int = Field(alias="unlockedBy")
    unlocked_at: datetime = Field(alias="unlockedAt")
    metadata: dict[str, Any] = Field(default_factory=dict)
    badge: BadgeOut | None = None


class AchievementProgressOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    earned_count: int = Field(alias="earnedCount")
    total_badges: int = Field(alias="totalBadges")
    progress_percentage: int = Field(alias="progressPercentage")


class FamilyAchievementListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    achievements: list[FamilyAchievementOut]
    progress: AchievementProgressOut
    family_level: FamilyLevelOut = Field(alias="familyLevel")


class AchievementCheckRequest(BaseModel):
    action: AchievementAction
    data: dict[str, Any] = Field(default_factory=dict)


class AchievementCheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_achievements: list[BadgeOut] = Field(alias="newAchievements")
    points_earned: int = Field(alias="pointsEarned")
    total_new_badges: int = Field(alias="totalNewBadges")
    family_level: FamilyLevelOut = Field(alias="familyLevel")
