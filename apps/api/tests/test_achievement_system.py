from __future__ import annotations

from datetime import UTC, datetime

import pytest

from lobohub.core.exceptions import InvalidInputError
from lobohub.services.achievement_system import (
    ACHIEVEMENT_BADGES,
    AchievementAction,
    AchievementCheckContext,
    BadgeCategory,
    BadgeRarity,
    Condition,
    CounterReading,
    MemberActivity,
    badges_by_category,
    badges_by_rarity,
    check_collaboration_badges,
    check_milestone_badges,
    check_task_completion_badges,
    evaluate_conditions,
    get_badge,
    level_from_points,
    points_for_badge_ids,
    points_required_for_level,
)

NOON = datetime(2026, 3, 4, 12, 0, tzinfo=UTC)


def _context(action: AchievementAction | str = AchievementAction.TASK_COMPLETED) -> AchievementCheckContext:
    return AchievementCheckContext(family_id=1, user_id=2, action=action, timestamp=NOON)


def test_catalog_has_unique_ids_in_declared_order() -> None:
    ids = [badge.id for badge in ACHIEVEMENT_BADGES]
    assert len(ids) == 16
    assert len(set(ids)) == 16
    assert ids[0] == "first_task"
    assert ids[-1] == "family_milestone"


def test_catalog_lookups() -> None:
    assert get_badge("night_owl").points == 25  # type: ignore[union-attr]
    assert get_badge("missing") is None
    assert [badge.id for badge in badges_by_category(BadgeCategory.COLLABORATION)] == ["team_player", "family_harmony"]
    assert [badge.id for badge in badges_by_rarity("legendary")] == ["family_milestone"]
    assert all(badge.rarity == BadgeRarity.EPIC for badge in badges_by_rarity(BadgeRarity.EPIC))


def test_points_for_badge_ids_ignores_unknown_ids() -> None:
    assert points_for_badge_ids({"first_task", "unknown_id"}) == 10
    assert points_for_badge_ids(["first_task", "first_task", "early_bird"]) == 35
    assert points_for_badge_ids(set()) == 0


@pytest.mark.parametrize(
    ("total_points", "level", "current", "to_next"),
    [
        (0, 1, 0, 100),
        (99, 1, 99, 1),
        (100, 2, 0, 250),
        (349, 2, 249, 1),
        (350, 3, 0, 400),
        (6300, 10, 0, 1450),
    ],
)
def test_level_from_points(total_points: int, level: int, current: int, to_next: int) -> None:
    progress = level_from_points(total_points)
    assert (progress.level, progress.current_level_points, progress.points_to_next_level) == (level, current, to_next)


def test_level_progress_always_sums_to_level_requirement() -> None:
    for total_points in range(0, 5000, 37):
        progress = level_from_points(total_points)
        required = points_required_for_level(progress.level)
        assert progress.current_level_points + progress.points_to_next_level == required
        assert progress.points_to_next_level > 0


@pytest.mark.parametrize("bad_value", [-1, 1.5, "100", True])
def test_level_from_points_rejects_invalid_totals(bad_value: object) -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        level_from_points(bad_value)  # type: ignore[arg-type]
    assert exc_info.value.field == "total_points"


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        _context("task_deleted")
    assert _context("list_created").action == AchievementAction.LIST_CREATED


def test_task_count_thresholds_are_exact_without_previous_count() -> None:
    result = check_task_completion_badges(_context(), 10, 0, NOON)
    assert "task_master_10" in result
    assert "first_task" not in result
    assert "task_champion_50" not in result

    assert check_task_completion_badges(_context(), 11, 0, NOON) == set()


def test_task_count_threshold_crossed_in_one_jump() -> None:
    result = check_task_completion_badges(_context(), 12, 0, NOON, previous_task_count=8)
    assert result == {"task_master_10"}


def test_streak_thresholds() -> None:
    assert check_task_completion_badges(_context(), 0, 7, NOON) == {"daily_driver"}
    assert check_task_completion_badges(_context(), 0, 30, NOON) == {"weekly_warrior"}
    assert check_task_completion_badges(_context(), 0, 7, NOON, previous_streak_days=7) == set()


@pytest.mark.parametrize(
    ("hour", "expected"),
    [(7, {"early_bird"}), (8, set()), (12, set()), (21, set()), (22, {"night_owl"}), (23, {"night_owl"})],
)
def test_time_of_day_badges(hour: int, expected: set[str]) -> None:
    timestamp = NOON.replace(hour=hour)
    assert check_task_completion_badges(_context(), 0, 0, timestamp) == expected


def test_perfect_week_needs_full_completion_rate() -> None:
    assert check_task_completion_badges(_context(), 0, 0, NOON, weekly_completion_percent=100.0) == {"perfectionist"}
    assert check_task_completion_badges(_context(), 0, 0, NOON, weekly_completion_percent=99.5) == set()


def test_team_player_requires_more_than_one_member() -> None:
    assert check_collaboration_badges(_context(), 0, 1, 1) == set()
    assert check_collaboration_badges(_context(), 0, 2, 3) == set()
    assert check_collaboration_badges(_context(), 0, 3, 3) == {"team_player"}


def test_family_harmony_threshold() -> None:
    assert check_collaboration_badges(_context(), 20, 0, 2) == {"family_harmony"}
    assert check_collaboration_badges(_context(), 21, 0, 2, previous_family_task_count=19) == {"family_harmony"}
    assert check_collaboration_badges(_context(), 21, 0, 2) == set()


def test_list_creator_only_on_list_created_action() -> None:
    assert check_milestone_badges(_context(AchievementAction.LIST_CREATED), 1, 0, 0, 1) == {"list_creator"}
    assert check_milestone_badges(_context(AchievementAction.TASK_COMPLETED), 1, 0, 0, 1) == set()


def test_budget_badges_only_on_budget_action() -> None:
    budget = _context(AchievementAction.BUDGET_TRANSACTION)
    assert check_milestone_badges(budget, 0, 0, 1, 1) == {"budget_tracker"}
    assert check_milestone_badges(budget, 0, 0, 100, 1) == {"financial_guru"}
    assert check_milestone_badges(_context(AchievementAction.LIST_CREATED), 0, 0, 1, 1) == set()


def test_milestone_level_and_completed_lists() -> None:
    context = _context(AchievementAction.LIST_COMPLETED)
    assert check_milestone_badges(context, 3, 10, 0, 1) == {"organized_shopper"}
    assert check_milestone_badges(context, 3, 0, 0, 10) == {"family_milestone"}
    assert check_milestone_badges(context, 3, 0, 0, 11, previous_family_level=9) == {"family_milestone"}
    assert check_milestone_badges(context, 3, 0, 0, 10, previous_family_level=10) == set()


def test_checks_are_repeatable_for_unchanged_inputs() -> None:
    first = check_task_completion_badges(_context(), 1, 1, NOON.replace(hour=6))
    second = check_task_completion_badges(_context(), 1, 1, NOON.replace(hour=6))
    assert first == second == {"first_task", "early_bird"}


def test_evaluate_conditions_dispatches_by_catalog_condition() -> None:
    result = evaluate_conditions(
        {
            Condition.TASKS_COMPLETED: CounterReading(previous=0, current=100),
            Condition.ALL_MEMBERS_ACTIVE_WEEK: MemberActivity(active_members=2, total_members=2),
        },
    )
    assert result == {"first_task", "task_master_10", "task_champion_50", "task_legend_100", "team_player"}
    assert evaluate_conditions({}) == set()
