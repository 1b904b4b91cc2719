from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lobohub.core.config import settings
from lobohub.models import (
    BudgetTransaction,
    FamilyAchievement,
    FamilyLevel,
    ShoppingList,
    Task,
    TaskStatus,
    User,
)
from lobohub.services.achievement_system import (
    ACHIEVEMENT_BADGES,
    AchievementAction,
    AchievementCheckContext,
    Badge,
    LevelProgress,
    check_collaboration_badges,
    check_milestone_badges,
    check_task_completion_badges,
    get_badge,
    level_from_points,
    points_for_badge_ids,
)

logger = logging.getLogger("lobohub.achievements")

STREAK_LOOKBACK_DAYS = 400


@dataclass(slots=True)
class AchievementCounters:
    user_completed_tasks: int = 0
    family_completed_tasks: int = 0
    completion_streak_days: int = 0
    completions_today: int = 0
    active_members_this_week: int = 0
    total_family_members: int = 0
    list_count: int = 0
    completed_list_count: int = 0
    budget_transaction_count: int = 0
    weekly_completion_percent: float | None = None


@dataclass(slots=True)
class AchievementCheckResult:
    new_badges: list[Badge]
    points_earned: int
    family_level: FamilyLevel


@dataclass(slots=True)
class AchievementProgress:
    earned_count: int
    total_badges: int
    progress_percentage: int


def local_timezone() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def to_local(value: datetime, tz: ZoneInfo | None = None) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    return aware.astimezone(tz or local_timezone())


def _week_bounds(at: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    local_day = to_local(at, tz).date()
    monday = local_day - timedelta(days=local_day.weekday())
    start = datetime.combine(monday, time.min, tzinfo=tz).astimezone(UTC)
    return start, start + timedelta(days=7)


def count_streak(days: set[date], *, ending: date) -> int:
    streak = 0
    cursor = ending
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def apply_level_progress(row: FamilyLevel, progress: LevelProgress) -> None:
    row.level = progress.level
    row.current_level_points = progress.current_level_points
    row.points_to_next_level = progress.points_to_next_level


class AchievementService:
    def __init__(self, db: Session):
        self.db = db

    def get_or_create_family_level(self, family_id: int) -> FamilyLevel:
        row = self.db.get(FamilyLevel, family_id)
        if row is not None:
            return row

        progress = level_from_points(0)
        row = FamilyLevel(family_id=family_id, total_points=0)
        apply_level_progress(row, progress)
        try:
            with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            existing = self.db.get(FamilyLevel, family_id, populate_existing=True)
            if existing is None:
                raise
            return existing
        return row

    def unlocked_badge_ids(self, family_id: int) -> set[str]:
        return set(
            self.db.scalars(
                select(FamilyAchievement.badge_id).where(FamilyAchievement.family_id == family_id),
            ).all(),
        )

    def list_family_achievements(self, family_id: int) -> list[FamilyAchievement]:
        return list(
            self.db.scalars(
                select(FamilyAchievement)
                .where(FamilyAchievement.family_id == family_id)
                .order_by(FamilyAchievement.unlocked_at.asc(), FamilyAchievement.id.asc()),
            ).all(),
        )

    def progress(self, family_id: int) -> AchievementProgress:
        earned = {badge_id for badge_id in self.unlocked_badge_ids(family_id) if get_badge(badge_id) is not None}
        total = len(ACHIEVEMENT_BADGES)
        percentage = round(len(earned) * 100 / total) if total else 0
        return AchievementProgress(earned_count=len(earned), total_badges=total, progress_percentage=percentage)

    def _count(self, query: Any) -> int:
        return int(self.db.scalar(query) or 0)

    def load_counters(self, *, family_id: int, user_id: int, at: datetime) -> AchievementCounters:
        tz = local_timezone()
        week_start, week_end = _week_bounds(at, tz)
        counters = AchievementCounters()

        counters.user_completed_tasks = self._count(
            select(func.count(Task.id)).where(
                Task.family_id == family_id,
                Task.status == TaskStatus.COMPLETE,
                Task.completed_by_user_id == user_id,
            ),
        )
        counters.family_completed_tasks = self._count(
            select(func.count(Task.id)).where(
                Task.family_id == family_id,
                Task.status == TaskStatus.COMPLETE,
            ),
        )

        completion_times = self.db.scalars(
            select(Task.completed_at).where(
                Task.family_id == family_id,
                Task.status == TaskStatus.COMPLETE,
                Task.completed_at.is_not(None),
                Task.completed_at >= at - timedelta(days=STREAK_LOOKBACK_DAYS),
            ),
        ).all()
        per_day = Counter(to_local(value, tz).date() for value in completion_times)
        today = to_local(at, tz).date()
        counters.completions_today = per_day.get(today, 0)
        counters.completion_streak_days = count_streak(set(per_day), ending=today)

        counters.total_family_members = self._count(
            select(func.count(User.id)).where(User.family_id == family_id),
        )
        counters.active_members_this_week = self._count(
            select(func.count(func.distinct(Task.completed_by_user_id)))
            .select_from(Task)
            .join(User, User.id == Task.completed_by_user_id)
            .where(
                Task.family_id == family_id,
                User.family_id == family_id,
                Task.status == TaskStatus.COMPLETE,
                Task.completed_at >= week_start,
                Task.completed_at < week_end,
            ),
        )

        due_this_week = self._count(
            select(func.count(Task.id)).where(
                Task.family_id == family_id,
                Task.due_date >= week_start,
                Task.due_date < week_end,
            ),
        )
        if due_this_week:
            done_this_week = self._count(
                select(func.count(Task.id)).where(
                    Task.family_id == family_id,
                    Task.due_date >= week_start,
                    Task.due_date < week_end,
                    Task.status == TaskStatus.COMPLETE,
                ),
            )
            counters.weekly_completion_percent = done_this_week * 100 / due_this_week

        counters.list_count = self._count(
            select(func.count(ShoppingList.id)).where(ShoppingList.family_id == family_id),
        )
        counters.completed_list_count = self._count(
            select(func.count(ShoppingList.id)).where(
                ShoppingList.family_id == family_id,
                ShoppingList.completed_at.is_not(None),
            ),
        )
        counters.budget_transaction_count = self._count(
            select(func.count(BudgetTransaction.id)).where(BudgetTransaction.family_id == family_id),
        )
        return counters

    def _candidate_badge_ids(
        self,
        context: AchievementCheckContext,
        counters: AchievementCounters,
        *,
        family_level: int,
    ) -> set[str]:
        action = context.action
        candidates: set[str] = set()

        if action == AchievementAction.TASK_COMPLETED:
            streak = counters.completion_streak_days
            candidates |= check_task_completion_badges(
                context,
                counters.user_completed_tasks,
                streak,
                to_local(context.timestamp),
                previous_streak_days=streak if counters.completions_today > 1 else streak - 1,
                weekly_completion_percent=counters.weekly_completion_percent,
            )
            candidates |= check_collaboration_badges(
                context,
                counters.family_completed_tasks,
                counters.active_members_this_week,
                counters.total_family_members,
            )

        # Only the counter moved by this action may cross a threshold.
        candidates |= check_milestone_badges(
            context,
            counters.list_count,
            counters.completed_list_count,
            counters.budget_transaction_count,
            family_level,
            previous_list_count=(
                counters.list_count - 1 if action == AchievementAction.LIST_CREATED else counters.list_count
            ),
            previous_completed_list_count=(
                counters.completed_list_count - 1
                if action == AchievementAction.LIST_COMPLETED
                else counters.completed_list_count
            ),
            previous_budget_transaction_count=(
                counters.budget_transaction_count - 1
                if action == AchievementAction.BUDGET_TRANSACTION
                else counters.budget_transaction_count
            ),
            previous_family_level=family_level,
        )
        return candidates

    def _unlock(self, context: AchievementCheckContext, badge_ids: set[str], already: set[str]) -> list[Badge]:
        unlocked: list[Badge] = []
        for badge in ACHIEVEMENT_BADGES:
            if badge.id not in badge_ids or badge.id in already:
                continue
            try:
                with self.db.begin_nested():
                    self.db.add(
                        FamilyAchievement(
                            family_id=context.family_id,
                            badge_id=badge.id,
                            unlocked_by=context.user_id,
                            unlocked_at=context.timestamp,
                            metadata_json={"action": context.action.value, **context.data},
                        ),
                    )
            except IntegrityError:
                # A concurrent request inserted the same (family, badge) row first.
                logger.info(
                    "achievement.unlock_conflict",
                    extra={"family_id": context.family_id, "badge_id": badge.id},
                )
                already.add(badge.id)
                continue
            already.add(badge.id)
            unlocked.append(badge)
            logger.info(
                "achievement.unlocked",
                extra={
                    "family_id": context.family_id,
                    "user_id": context.user_id,
                    "action": context.action.value,
                    "badge_id": badge.id,
                    "points": badge.points,
                },
            )
        return unlocked

    def process_action(self, context: AchievementCheckContext) -> AchievementCheckResult:
        level_row = self.get_or_create_family_level(context.family_id)
        counters = self.load_counters(family_id=context.family_id, user_id=context.user_id, at=context.timestamp)
        already = self.unlocked_badge_ids(context.family_id)

        new_badges = self._unlock(
            context,
            self._candidate_badge_ids(context, counters, family_level=level_row.level),
            already,
        )
        points_earned = 0
        pending = new_badges
        while pending:
            earned = points_for_badge_ids(badge.id for badge in pending)
            points_earned += earned
            previous_level = level_row.level
            level_row.total_points += earned
            apply_level_progress(level_row, level_from_points(level_row.total_points))
            if level_row.level == previous_level:
                break
            # The level itself can cross a badge threshold once points are applied.
            pending = self._unlock(
                context,
                check_milestone_badges(
                    context,
                    counters.list_count,
                    counters.completed_list_count,
                    counters.budget_transaction_count,
                    level_row.level,
                    previous_list_count=counters.list_count,
                    previous_completed_list_count=counters.completed_list_count,
                    previous_budget_transaction_count=counters.budget_transaction_count,
                    previous_family_level=previous_level,
                ),
                already,
            )
            new_badges.extend(pending)

        self.db.flush()
        if new_badges:
            logger.info(
                "achievement.level_updated",
                extra={
                    "family_id": context.family_id,
                    "badge_ids": [badge.id for badge in new_badges],
                    "points_earned": points_earned,
                    "total_points": level_row.total_points,
                    "level": level_row.level,
                },
            )
        return AchievementCheckResult(new_badges=new_badges, points_earned=points_earned, family_level=level_row)


def record_action(
    db: Session,
    *,
    family_id: int,
    user_id: int,
    action: AchievementAction | str,
    data: dict[str, Any] | None = None,
    timestamp: datetime | None = None,
) -> AchievementCheckResult:
    context = AchievementCheckContext(
        family_id=family_id,
        user_id=user_id,
        action=action,
        timestamp=timestamp or datetime.now(UTC),
        data=data or {},
    )
    return AchievementService(db).process_action(context)
