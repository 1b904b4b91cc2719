from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from lobohub.core.exceptions import InvalidInputError

FIRST_LEVEL_POINTS = 100
LEVEL_POINTS_STEP = 150
EARLY_BIRD_HOUR = 8
NIGHT_OWL_HOUR = 22


class BadgeCategory(str, Enum):
    TASKS = "tasks"
    COLLABORATION = "collaboration"
    MILESTONES = "milestones"
    CONSISTENCY = "consistency"
    SPECIAL = "special"


class BadgeRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class RequirementType(str, Enum):
    COUNT = "count"
    STREAK = "streak"
    PERCENTAGE = "percentage"
    SPECIAL = "special"


class Timeframe(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    ALL_TIME = "all-time"


class Condition(str, Enum):
    TASKS_COMPLETED = "tasks_completed"
    COMPLETION_STREAK = "completion_streak"
    FAMILY_TASKS_COMPLETED = "family_tasks_completed"
    ALL_MEMBERS_ACTIVE_WEEK = "all_members_active_week"
    CREATE_LIST = "create_list"
    COMPLETE_LISTS = "complete_lists"
    BUDGET_TRANSACTION = "budget_transaction"
    TASK_BEFORE_8AM = "task_before_8am"
    TASK_AFTER_10PM = "task_after_10pm"
    PERFECT_WEEK = "perfect_week"
    FAMILY_LEVEL = "family_level"


class AchievementAction(str, Enum):
    TASK_COMPLETED = "task_completed"
    TASK_CREATED = "task_created"
    LIST_CREATED = "list_created"
    LIST_COMPLETED = "list_completed"
    BUDGET_TRANSACTION = "budget_transaction"
    CHAT_MESSAGE = "chat_message"


@dataclass(frozen=True, slots=True)
class Requirement:
    type: RequirementType
    target: int
    condition: Condition
    timeframe: Timeframe | None = None


@dataclass(frozen=True, slots=True)
class Badge:
    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    points: int
    requirements: Requirement
    rarity: BadgeRarity

    def to_dict(self) -> dict[str, Any]:
        requirements: dict[str, Any] = {
            "type": self.requirements.type.value,
            "target": self.requirements.target,
            "condition": self.requirements.condition.value,
        }
        if self.requirements.timeframe is not None:
            requirements["timeframe"] = self.requirements.timeframe.value
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category.value,
            "points": self.points,
            "requirements": requirements,
            "rarity": self.rarity.value,
        }


def _badge(
    badge_id: str,
    name: str,
    description: str,
    icon: str,
    category: BadgeCategory,
    points: int,
    requirement: Requirement,
    rarity: BadgeRarity,
) -> Badge:
    return Badge(
        id=badge_id,
        name=name,
        description=description,
        icon=icon,
        category=category,
        points=points,
        requirements=requirement,
        rarity=rarity,
    )


ACHIEVEMENT_BADGES: tuple[Badge, ...] = (
    # Task completion
    _badge(
        "first_task", "Getting Started", "Complete your first family task", "🎯",
        BadgeCategory.TASKS, 10,
        Requirement(RequirementType.COUNT, 1, Condition.TASKS_COMPLETED),
        BadgeRarity.COMMON,
    ),
    _badge(
        "task_master_10", "Task Master", "Complete 10 tasks", "✅",
        BadgeCategory.TASKS, 50,
        Requirement(RequirementType.COUNT, 10, Condition.TASKS_COMPLETED),
        BadgeRarity.COMMON,
    ),
    _badge(
        "task_champion_50", "Task Champion", "Complete 50 tasks", "🏆",
        BadgeCategory.TASKS, 200,
        Requirement(RequirementType.COUNT, 50, Condition.TASKS_COMPLETED),
        BadgeRarity.RARE,
    ),
    _badge(
        "task_legend_100", "Task Legend", "Complete 100 tasks", "👑",
        BadgeCategory.TASKS, 500,
        Requirement(RequirementType.COUNT, 100, Condition.TASKS_COMPLETED),
        BadgeRarity.EPIC,
    ),
    # Consistency
    _badge(
        "daily_driver", "Daily Driver", "Complete tasks for 7 days in a row", "🔥",
        BadgeCategory.CONSISTENCY, 100,
        Requirement(RequirementType.STREAK, 7, Condition.COMPLETION_STREAK, Timeframe.DAY),
        BadgeRarity.RARE,
    ),
    _badge(
        "weekly_warrior", "Weekly Warrior", "Complete tasks every day for a month", "💪",
        BadgeCategory.CONSISTENCY, 300,
        Requirement(RequirementType.STREAK, 30, Condition.COMPLETION_STREAK, Timeframe.DAY),
        BadgeRarity.EPIC,
    ),
    # Collaboration
    _badge(
        "team_player", "Team Player", "Have all family members complete tasks in the same week", "🤝",
        BadgeCategory.COLLABORATION, 150,
        Requirement(RequirementType.SPECIAL, 1, Condition.ALL_MEMBERS_ACTIVE_WEEK, Timeframe.WEEK),
        BadgeRarity.RARE,
    ),
    _badge(
        "family_harmony", "Family Harmony", "Complete 20 tasks as a family", "👨‍👩‍👧‍👦",
        BadgeCategory.COLLABORATION, 250,
        Requirement(RequirementType.COUNT, 20, Condition.FAMILY_TASKS_COMPLETED),
        BadgeRarity.EPIC,
    ),
    # Lists
    _badge(
        "list_creator", "List Creator", "Create your first shopping list", "📝",
        BadgeCategory.MILESTONES, 10,
        Requirement(RequirementType.COUNT, 1, Condition.CREATE_LIST),
        BadgeRarity.COMMON,
    ),
    _badge(
        "organized_shopper", "Organized Shopper", "Complete 10 shopping lists", "🛒",
        BadgeCategory.MILESTONES, 75,
        Requirement(RequirementType.COUNT, 10, Condition.COMPLETE_LISTS),
        BadgeRarity.COMMON,
    ),
    # Budget
    _badge(
        "budget_tracker", "Budget Tracker", "Track your first budget transaction", "💰",
        BadgeCategory.MILESTONES, 15,
        Requirement(RequirementType.COUNT, 1, Condition.BUDGET_TRANSACTION),
        BadgeRarity.COMMON,
    ),
    _badge(
        "financial_guru", "Financial Guru", "Track 100 budget transactions", "📊",
        BadgeCategory.MILESTONES, 200,
        Requirement(RequirementType.COUNT, 100, Condition.BUDGET_TRANSACTION),
        BadgeRarity.RARE,
    ),
    # Special
    _badge(
        "early_bird", "Early Bird", "Complete a task before 8 AM", "🌅",
        BadgeCategory.SPECIAL, 25,
        Requirement(RequirementType.SPECIAL, 1, Condition.TASK_BEFORE_8AM),
        BadgeRarity.COMMON,
    ),
    _badge(
        "night_owl", "Night Owl", "Complete a task after 10 PM", "🦉",
        BadgeCategory.SPECIAL, 25,
        Requirement(RequirementType.SPECIAL, 1, Condition.TASK_AFTER_10PM),
        BadgeRarity.COMMON,
    ),
    _badge(
        "perfectionist", "Perfectionist", "Have 100% task completion rate for a week", "💯",
        BadgeCategory.SPECIAL, 150,
        Requirement(RequirementType.PERCENTAGE, 100, Condition.PERFECT_WEEK, Timeframe.WEEK),
        BadgeRarity.EPIC,
    ),
    _badge(
        "family_milestone", "Family Milestone", "Reach level 10 as a family", "🎉",
        BadgeCategory.SPECIAL, 1000,
        Requirement(RequirementType.SPECIAL, 10, Condition.FAMILY_LEVEL),
        BadgeRarity.LEGENDARY,
    ),
)

_BADGES_BY_ID: Mapping[str, Badge] = {badge.id: badge for badge in ACHIEVEMENT_BADGES}


def all_badges() -> tuple[Badge, ...]:
    return ACHIEVEMENT_BADGES


def get_badge(badge_id: str) -> Badge | None:
    return _BADGES_BY_ID.get(badge_id)


def badges_by_category(category: BadgeCategory | str) -> list[Badge]:
    return [badge for badge in ACHIEVEMENT_BADGES if badge.category == category]


def badges_by_rarity(rarity: BadgeRarity | str) -> list[Badge]:
    return [badge for badge in ACHIEVEMENT_BADGES if badge.rarity == rarity]


def points_for_badge_ids(badge_ids: Iterable[str]) -> int:
    total = 0
    for badge_id in set(badge_ids):
        badge = _BADGES_BY_ID.get(badge_id)
        if badge is not None:
            total += badge.points
    return total


# Levels


@dataclass(frozen=True, slots=True)
class LevelProgress:
    level: int
    current_level_points: int
    points_to_next_level: int


def points_required_for_level(level: int) -> int:
    if level < 1:
        raise InvalidInputError("level", "must be >= 1")
    if level == 1:
        return FIRST_LEVEL_POINTS
    return FIRST_LEVEL_POINTS + (level - 1) * LEVEL_POINTS_STEP


def level_from_points(total_points: int) -> LevelProgress:
    """Map a cumulative point total to the family level and progress within it.

    Level 1 takes 100 points to complete and every later level N takes
    ``100 + (N - 1) * 150``. Negative totals are rejected.
    """
    if isinstance(total_points, bool) or not isinstance(total_points, int):
        raise InvalidInputError("total_points", "must be an integer")
    if total_points < 0:
        raise InvalidInputError("total_points", "must not be negative")

    level = 1
    remaining = total_points
    required = points_required_for_level(level)
    while remaining >= required:
        remaining -= required
        level += 1
        required = points_required_for_level(level)

    return LevelProgress(
        level=level,
        current_level_points=remaining,
        points_to_next_level=required - remaining,
    )


# Checking


@dataclass(frozen=True, slots=True)
class AchievementCheckContext:
    family_id: int
    user_id: int
    action: AchievementAction
    timestamp: datetime
    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.action, AchievementAction):
            try:
                action = AchievementAction(self.action)
            except ValueError as exc:
                raise InvalidInputError("action", f"unknown action {self.action!r}") from exc
            object.__setattr__(self, "action", action)


@dataclass(frozen=True, slots=True)
class CounterReading:
    previous: int
    current: int


@dataclass(frozen=True, slots=True)
class MemberActivity:
    active_members: int
    total_members: int


def _reading(current: int, previous: int | None) -> CounterReading:
    return CounterReading(previous=current - 1 if previous is None else previous, current=current)


def _threshold_crossed(requirement: Requirement, reading: CounterReading) -> bool:
    return reading.previous < requirement.target <= reading.current


def _all_members_active(_requirement: Requirement, activity: MemberActivity) -> bool:
    return activity.total_members > 1 and activity.active_members == activity.total_members


def _before_early_bird_hour(_requirement: Requirement, hour: int) -> bool:
    return hour < EARLY_BIRD_HOUR


def _after_night_owl_hour(_requirement: Requirement, hour: int) -> bool:
    return hour >= NIGHT_OWL_HOUR


def _percentage_reached(requirement: Requirement, percent: float) -> bool:
    return percent >= requirement.target


_CONDITION_HANDLERS: Mapping[Condition, Callable[[Requirement, Any], bool]] = {
    Condition.TASKS_COMPLETED: _threshold_crossed,
    Condition.COMPLETION_STREAK: _threshold_crossed,
    Condition.FAMILY_TASKS_COMPLETED: _threshold_crossed,
    Condition.ALL_MEMBERS_ACTIVE_WEEK: _all_members_active,
    Condition.CREATE_LIST: _threshold_crossed,
    Condition.COMPLETE_LISTS: _threshold_crossed,
    Condition.BUDGET_TRANSACTION: _threshold_crossed,
    Condition.TASK_BEFORE_8AM: _before_early_bird_hour,
    Condition.TASK_AFTER_10PM: _after_night_owl_hour,
    Condition.PERFECT_WEEK: _percentage_reached,
    Condition.FAMILY_LEVEL: _threshold_crossed,
}


def evaluate_conditions(observations: Mapping[Condition, Any]) -> set[str]:
    """Return the ids of every catalog badge whose condition holds for ``observations``.

    Conditions missing from ``observations`` are not evaluated.
    """
    unlocked: set[str] = set()
    for badge in ACHIEVEMENT_BADGES:
        condition = badge.requirements.condition
        if condition not in observations:
            continue
        if _CONDITION_HANDLERS[condition](badge.requirements, observations[condition]):
            unlocked.add(badge.id)
    return unlocked


def check_task_completion_badges(
    context: AchievementCheckContext,
    total_completed_task_count: int,
    completion_streak_days: int,
    completion_timestamp: datetime,
    *,
    previous_task_count: int | None = None,
    previous_streak_days: int | None = None,
    weekly_completion_percent: float | None = None,
) -> set[str]:
    observations: dict[Condition, Any] = {
        Condition.TASKS_COMPLETED: _reading(total_completed_task_count, previous_task_count),
        Condition.COMPLETION_STREAK: _reading(completion_streak_days, previous_streak_days),
        Condition.TASK_BEFORE_8AM: completion_timestamp.hour,
        Condition.TASK_AFTER_10PM: completion_timestamp.hour,
    }
    if weekly_completion_percent is not None:
        observations[Condition.PERFECT_WEEK] = weekly_completion_percent
    return evaluate_conditions(observations)


def check_collaboration_badges(
    context: AchievementCheckContext,
    family_task_count: int,
    active_members_this_week: int,
    total_family_members: int,
    *,
    previous_family_task_count: int | None = None,
) -> set[str]:
    return evaluate_conditions(
        {
            Condition.FAMILY_TASKS_COMPLETED: _reading(family_task_count, previous_family_task_count),
            Condition.ALL_MEMBERS_ACTIVE_WEEK: MemberActivity(
                active_members=active_members_this_week,
                total_members=total_family_members,
            ),
        },
    )


def check_milestone_badges(
    context: AchievementCheckContext,
    list_count: int,
    completed_list_count: int,
    budget_transaction_count: int,
    family_level: int,
    *,
    previous_list_count: int | None = None,
    previous_completed_list_count: int | None = None,
    previous_budget_transaction_count: int | None = None,
    previous_family_level: int | None = None,
) -> set[str]:
    observations: dict[Condition, Any] = {
        Condition.COMPLETE_LISTS: _reading(completed_list_count, previous_completed_list_count),
        Condition.FAMILY_LEVEL: _reading(family_level, previous_family_level),
    }
    # List and budget badges are only awarded on the action that creates the row.
    if context.action == AchievementAction.LIST_CREATED:
        observations[Condition.CREATE_LIST] = _reading(list_count, previous_list_count)
    if context.action == AchievementAction.BUDGET_TRANSACTION:
        observations[Condition.BUDGET_TRANSACTION] = _reading(
            budget_transaction_count,
            previous_budget_transaction_count,
        )
    return evaluate_conditions(observations)
