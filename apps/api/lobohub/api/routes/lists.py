from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, Response, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lobohub.api.deps import CurrentFamily, CurrentUser, DBSession
from lobohub.models import Family, ListItem, ShoppingList, User
from lobohub.schemas.achievements import BadgeOut
from lobohub.schemas.lists import (
    ListCreateRequest,
    ListItemCreateForListRequest,
    ListItemCreateRequest,
    ListItemOut,
    ListItemUpdateRequest,
    ListOut,
)
from lobohub.services.achievement_system import AchievementAction
from lobohub.services.achievements import AchievementCheckResult, record_action

router = APIRouter(prefix="/api", tags=["lists"])


def _badges(result: AchievementCheckResult | None) -> list[BadgeOut]:
    if result is None:
        return []
    return [BadgeOut.from_badge(badge) for badge in result.new_badges]


def list_out(shopping_list: ShoppingList, result: AchievementCheckResult | None = None) -> ListOut:
    return ListOut(
        id=shopping_list.id,
        family_id=shopping_list.family_id,
        user_id=shopping_list.user_id,
        title=shopping_list.title,
        description=shopping_list.description,
        category=shopping_list.category,
        template=shopping_list.template,
        completed_at=shopping_list.completed_at,
        new_achievements=_badges(result),
    )


def list_item_out(item: ListItem, result: AchievementCheckResult | None = None) -> ListItemOut:
    return ListItemOut(
        id=item.id,
        list_id=item.list_id,
        title=item.title,
        quantity=item.quantity,
        notes=item.notes,
        category=item.category,
        completed=item.completed,
        new_achievements=_badges(result),
    )


def _get_family_list(db: Session, *, family: Family, list_id: int) -> ShoppingList:
    shopping_list = db.scalar(
        select(ShoppingList).where(ShoppingList.id == list_id, ShoppingList.family_id == family.id),
    )
    if shopping_list is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="List not found")
    return shopping_list


def _get_family_item(db: Session, *, family: Family, item_id: int) -> ListItem:
    item = db.scalar(
        select(ListItem)
        .join(ShoppingList, ShoppingList.id == ListItem.list_id)
        .where(ListItem.id == item_id, ShoppingList.family_id == family.id),
    )
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="List item not found")
    return item


def sync_list_completion(db: Session, shopping_list: ShoppingList, *, now: datetime) -> bool:
    """Stamp or clear ``completed_at`` from the item states.

    Returns True only when the list has just become complete.
    """
    db.flush()
    total, done = db.execute(
        select(
            func.count(ListItem.id),
            func.count(ListItem.id).filter(ListItem.completed.is_(True)),
        ).where(ListItem.list_id == shopping_list.id),
    ).one()
    is_complete = total > 0 and total == done
    if is_complete and shopping_list.completed_at is None:
        shopping_list.completed_at = now
        return True
    if not is_complete:
        shopping_list.completed_at = None
    return False


def _record_if_completed(
    db: Session,
    shopping_list: ShoppingList,
    *,
    user: User,
) -> AchievementCheckResult | None:
    now = datetime.now(UTC)
    if not sync_list_completion(db, shopping_list, now=now):
        return None
    db.flush()
    return record_action(
        db,
        family_id=shopping_list.family_id,
        user_id=user.id,
        action=AchievementAction.LIST_COMPLETED,
        data={"list_id": shopping_list.id},
        timestamp=now,
    )


def _add_item(db: Session, shopping_list: ShoppingList, payload: ListItemCreateRequest) -> ListItem:
    item = ListItem(
        list_id=shopping_list.id,
        title=payload.title,
        quantity=payload.quantity,
        notes=payload.notes,
        category=payload.category,
        completed=False,
    )
    db.add(item)
    sync_list_completion(db, shopping_list, now=datetime.now(UTC))
    return item


@router.get("/lists", response_model=list[ListOut])
def list_lists(db: DBSession, family: CurrentFamily) -> list[ListOut]:
    rows = db.scalars(
        select(ShoppingList)
        .where(ShoppingList.family_id == family.id)
        .order_by(ShoppingList.created_at.desc(), ShoppingList.id.desc()),
    ).all()
    return [list_out(row) for row in rows]


@router.post("/lists", response_model=ListOut, status_code=status.HTTP_201_CREATED)
def create_list(payload: ListCreateRequest, db: DBSession, user: CurrentUser, family: CurrentFamily) -> ListOut:
    shopping_list = ShoppingList(
        family_id=family.id,
        user_id=user.id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        template=payload.template,
    )
    db.add(shopping_list)
    db.flush()
    result = record_action(
        db,
        family_id=family.id,
        user_id=user.id,
        action=AchievementAction.LIST_CREATED,
        data={"list_id": shopping_list.id},
    )
    db.commit()
    return list_out(shopping_list, result)


@router.delete("/lists/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_list(list_id: int, db: DBSession, family: CurrentFamily) -> Response:
    shopping_list = _get_family_list(db, family=family, list_id=list_id)
    for item in db.scalars(select(ListItem).where(ListItem.list_id == shopping_list.id)).all():
        db.delete(item)
    db.delete(shopping_list)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/lists/{list_id}/items", response_model=list[ListItemOut])
def list_items(list_id: int, db: DBSession, family: CurrentFamily) -> list[ListItemOut]:
    shopping_list = _get_family_list(db, family=family, list_id=list_id)
    items = db.scalars(
        select(ListItem).where(ListItem.list_id == shopping_list.id).order_by(ListItem.id.asc()),
    ).all()
    return [list_item_out(item) for item in items]


@router.post("/lists/{list_id}/items", response_model=ListItemOut, status_code=status.HTTP_201_CREATED)
def create_list_item(
    list_id: int,
    payload: ListItemCreateRequest,
    db: DBSession,
    family: CurrentFamily,
) -> ListItemOut:
    shopping_list = _get_family_list(db, family=family, list_id=list_id)
    item = _add_item(db, shopping_list, payload)
    db.commit()
    return list_item_out(item)


@router.post("/list-items", response_model=ListItemOut, status_code=status.HTTP_201_CREATED)
def create_item(payload: ListItemCreateForListRequest, db: DBSession, family: CurrentFamily) -> ListItemOut:
    shopping_list = _get_family_list(db, family=family, list_id=payload.list_id)
    item = _add_item(db, shopping_list, payload)
    db.commit()
    return list_item_out(item)


@router.patch("/list-items/{item_id}", response_model=ListItemOut)
def update_list_item(
    item_id: int,
    payload: ListItemUpdateRequest,
    db: DBSession,
    user: CurrentUser,
    family: CurrentFamily,
) -> ListItemOut:
    item = _get_family_item(db, family=family, item_id=item_id)
    shopping_list = _get_family_list(db, family=family, list_id=item.list_id)

    for field_name, value in payload.model_dump(exclude_unset=True).items():
        if field_name in {"title", "completed"} and value is None:
            continue
        setattr(item, field_name, value)

    result = _record_if_completed(db, shopping_list, user=user)
    db.commit()
    return list_item_out(item, result)


@router.delete("/list-items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_list_item(item_id: int, db: DBSession, user: CurrentUser, family: CurrentFamily) -> Response:
    item = _get_family_item(db, family=family, item_id=item_id)
    shopping_list = _get_family_list(db, family=family, list_id=item.list_id)
    db.delete(item)
    # Removing the last unchecked item completes the list.
    _record_if_completed(db, shopping_list, user=user)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
