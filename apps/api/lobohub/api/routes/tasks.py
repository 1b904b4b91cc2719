from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from lobohub.api.deps import CurrentFamily, CurrentUser, DBSession
from lobohub.models import Family, Task, TaskStatus, User
from lobohub.schemas.achievements import BadgeOut
from lobohub.schemas.tasks import TaskCreateRequest, TaskOut, TaskUpdateRequest
from lobohub.services.achievement_system import AchievementAction
from lobohub.services.achievements import AchievementCheckResult, record_action

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

_REQUIRED_FIELDS = frozenset({"title", "status"})


def task_out(task: Task, result: AchievementCheckResult | None = None) -> TaskOut:
    return TaskOut(
        id=task.id,
        family_id=task.family_id,
        user_id=task.user_id,
        title=task.title,
        description=task.description,
        status=task.status,
        assigned_to_user_id=task.assigned_to_user_id,
        category=task.category,
        due_date=task.due_date,
        completed_at=task.completed_at,
        completed_by_user_id=task.completed_by_user_id,
        new_achievements=[BadgeOut.from_badge(badge) for badge in result.new_badges] if result else [],
    )


def _get_family_task(db: Session, *, family: Family, task_id: int) -> Task:
    task = db.scalar(select(Task).where(Task.id == task_id, Task.family_id == family.id))
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


def _validate_assignee(db: Session, *, family: Family, user_id: int | None) -> None:
    if user_id is None:
        return
    assignee = db.get(User, user_id)
    if assignee is None or assignee.family_id != family.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Assignee is not a family member")


@router.get("", response_model=list[TaskOut])
def list_tasks(
    db: DBSession,
    family: CurrentFamily,
    status_filter: Annotated[TaskStatus | None, Query(alias="status")] = None,
) -> list[TaskOut]:
    query = select(Task).where(Task.family_id == family.id)
    if status_filter is not None:
        query = query.where(Task.status == status_filter)
    tasks = db.scalars(query.order_by(Task.created_at.desc(), Task.id.desc())).all()
    return [task_out(task) for task in tasks]


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(payload: TaskCreateRequest, db: DBSession, user: CurrentUser, family: CurrentFamily) -> TaskOut:
    _validate_assignee(db, family=family, user_id=payload.assigned_to_user_id)
    now = datetime.now(UTC)
    task = Task(
        family_id=family.id,
        user_id=user.id,
        title=payload.title,
        description=payload.description,
        status=payload.status,
        assigned_to_user_id=payload.assigned_to_user_id,
        category=payload.category,
        due_date=payload.due_date,
    )
    if payload.status == TaskStatus.COMPLETE:
        task.completed_at = now
        task.completed_by_user_id = user.id
    db.add(task)
    db.flush()

    action = AchievementAction.TASK_COMPLETED if task.status == TaskStatus.COMPLETE else AchievementAction.TASK_CREATED
    result = record_action(
        db,
        family_id=family.id,
        user_id=user.id,
        action=action,
        data={"task_id": task.id},
        timestamp=now,
    )
    db.commit()
    return task_out(task, result)


@router.patch("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: int,
    payload: TaskUpdateRequest,
    db: DBSession,
    user: CurrentUser,
    family: CurrentFamily,
) -> TaskOut:
    task = _get_family_task(db, family=family, task_id=task_id)
    changes = payload.model_dump(exclude_unset=True)
    if "assigned_to_user_id" in changes:
        _validate_assignee(db, family=family, user_id=changes["assigned_to_user_id"])

    was_complete = task.status == TaskStatus.COMPLETE
    for field_name, value in changes.items():
        if field_name in _REQUIRED_FIELDS and value is None:
            continue
        setattr(task, field_name, value)

    result: AchievementCheckResult | None = None
    now = datetime.now(UTC)
    if task.status == TaskStatus.COMPLETE and not was_complete:
        task.completed_at = now
        task.completed_by_user_id = user.id
        db.flush()
        result = record_action(
            db,
            family_id=family.id,
            user_id=user.id,
            action=AchievementAction.TASK_COMPLETED,
            data={"task_id": task.id},
            timestamp=now,
        )
    elif task.status != TaskStatus.COMPLETE and was_complete:
        task.completed_at = None
        task.completed_by_user_id = None

    db.commit()
    return task_out(task, result)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: int, db: DBSession, family: CurrentFamily) -> Response:
    task = _get_family_task(db, family=family, task_id=task_id)
    db.delete(task)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
