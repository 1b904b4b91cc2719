from __future__ import annotations

import pytest
from pydantic import ValidationError
from sqlalchemy.orm import Session

from lobohub.api.routes.achievements import (
    check_achievements,
    get_family_level,
    list_badges,
    list_family_achievements,
)
from lobohub.models import Family, ShoppingList, User
from lobohub.schemas.achievements import AchievementCheckRequest
from lobohub.services.achievement_system import BadgeCategory, BadgeRarity
from lobohub.services.achievements import AchievementService


def test_list_badges_filters_by_category_and_rarity(family: Family) -> None:
    everything = list_badges(_=family)
    assert len(everything.badges) == 16

    epic = list_badges(_=family, rarity=BadgeRarity.EPIC)
    assert [badge.id for badge in epic.badges] == [
        "task_legend_100",
        "weekly_warrior",
        "family_harmony",
        "perfectionist",
    ]

    milestones = list_badges(_=family, category=BadgeCategory.MILESTONES)
    assert len(milestones.badges) == 4

    special_common = list_badges(_=family, category=BadgeCategory.SPECIAL, rarity=BadgeRarity.COMMON)
    assert [badge.id for badge in special_common.badges] == ["early_bird", "night_owl"]


def test_family_level_starts_at_level_one(db: Session, family: Family) -> None:
    result = get_family_level(db=db, family=family, achievements=AchievementService(db))

    assert result.level == 1
    assert result.total_points == 0
    assert result.points_to_next_level == 100
    assert result.model_dump(by_alias=True)["pointsToNextLevel"] == 100


def test_check_persists_unlocks_and_reports_progress(db: Session, family: Family, user: User) -> None:
    db.add(ShoppingList(family_id=family.id, user_id=user.id, title="Groceries"))
    db.flush()
    service = AchievementService(db)

    response = check_achievements(
        payload=AchievementCheckRequest(action="list_created", data={"list_id": 1}),
        db=db,
        user=user,
        family=family,
        achievements=service,
    )

    assert [badge.id for badge in response.new_achievements] == ["list_creator"]
    assert response.points_earned == 10
    assert response.total_new_badges == 1
    assert response.family_level.total_points == 10

    listing = list_family_achievements(db=db, family=family, achievements=service)
    assert [row.badge_id for row in listing.achievements] == ["list_creator"]
    assert listing.achievements[0].badge is not None
    assert listing.achievements[0].metadata == {"action": "list_created", "list_id": 1}
    assert listing.progress.earned_count == 1
    assert listing.progress.total_badges == 16
    assert listing.progress.progress_percentage == 6
    assert listing.family_level.total_points == 10


def test_check_twice_is_idempotent(db: Session, family: Family, user: User) -> None:
    db.add(ShoppingList(family_id=family.id, user_id=user.id, title="Groceries"))
    db.flush()
    payload = AchievementCheckRequest(action="list_created")

    first = check_achievements(payload=payload, db=db, user=user, family=family, achievements=AchievementService(db))
    second = check_achievements(payload=payload, db=db, user=user, family=family, achievements=AchievementService(db))

    assert first.total_new_badges == 1
    assert second.total_new_badges == 0
    assert second.family_level.total_points == 10


def test_check_rejects_unknown_action() -> None:
    with pytest.raises(ValidationError):
        AchievementCheckRequest(action="task_deleted")
