from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Query

from lobohub.api.deps import AchievementSvc, CurrentFamily, CurrentUser, DBSession
from lobohub.models import FamilyAchievement, FamilyLevel
from lobohub.schemas.achievements import (
    AchievementCheckRequest,
    AchievementCheckResponse,
    AchievementProgressOut,
    BadgeListResponse,
    BadgeOut,
    FamilyAchievementListResponse,
    FamilyAchievementOut,
    FamilyLevelOut,
)
from lobohub.services.achievement_system import (
    AchievementCheckContext,
    BadgeCategory,
    BadgeRarity,
    all_badges,
    badges_by_category,
    badges_by_rarity,
    get_badge,
)

router = APIRouter(prefix="/api/achievements", tags=["achievements"])


def family_level_out(row: FamilyLevel) -> FamilyLevelOut:
    return FamilyLevelOut(
        family_id=row.family_id,
        level=row.level,
        total_points=row.total_points,
        current_level_points=row.current_level_points,
        points_to_next_level=row.points_to_next_level,
    )


def _family_achievement_out(row: FamilyAchievement) -> FamilyAchievementOut:
    badge = get_badge(row.badge_id)
    return FamilyAchievementOut(
        id=row.id,
        badge_id=row.badge_id,
        unlocked_by=row.unlocked_by,
        unlocked_at=row.unlocked_at,
        metadata=row.metadata_json or {},
        badge=BadgeOut.from_badge(badge) if badge is not None else None,
    )


@router.get("/badges", response_model=BadgeListResponse)
def list_badges(
    _: CurrentFamily,
    category: Annotated[BadgeCategory | None, Query()] = None,
    rarity: Annotated[BadgeRarity | None, Query()] = None,
) -> BadgeListResponse:
    badges = list(all_badges()) if category is None else badges_by_category(category)
    if rarity is not None:
        rarity_ids = {badge.id for badge in badges_by_rarity(rarity)}
        badges = [badge for badge in badges if badge.id in rarity_ids]
    return BadgeListResponse(badges=[BadgeOut.from_badge(badge) for badge in badges])


@router.get("/family-level", response_model=FamilyLevelOut)
def get_family_level(db: DBSession, family: CurrentFamily, achievements: AchievementSvc) -> FamilyLevelOut:
    row = achievements.get_or_create_family_level(family.id)
    db.commit()
    return family_level_out(row)


@router.get("/family-achievements", response_model=FamilyAchievementListResponse)
def list_family_achievements(
    db: DBSession,
    family: CurrentFamily,
    achievements: AchievementSvc,
) -> FamilyAchievementListResponse:
    level_row = achievements.get_or_create_family_level(family.id)
    rows = achievements.list_family_achievements(family.id)
    progress = achievements.progress(family.id)
    db.commit()
    return FamilyAchievementListResponse(
        achievements=[_family_achievement_out(row) for row in rows],
        progress=AchievementProgressOut(
            earned_count=progress.earned_count,
            total_badges=progress.total_badges,
            progress_percentage=progress.progress_percentage,
        ),
        family_level=family_level_out(level_row),
    )


@router.post("/check", response_model=AchievementCheckResponse)
def check_achievements(
    payload: AchievementCheckRequest,
    db: DBSession,
    user: CurrentUser,
    family: CurrentFamily,
    achievements: AchievementSvc,
) -> AchievementCheckResponse:
    context = AchievementCheckContext(
        family_id=family.id,
        user_id=user.id,
        action=payload.action,
        timestamp=datetime.now(UTC),
        data=payload.data,
    )
    result = achievements.process_action(context)
    db.commit()
    return AchievementCheckResponse(
        new_achievements=[BadgeOut.from_badge(badge) for badge in result.new_badges],
        points_earned=result.points_earned,
        total_new_badges=len(result.new_badges),
        family_level=family_level_out(result.family_level),
    )
