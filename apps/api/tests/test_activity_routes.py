from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from lobohub.api.routes.budget import create_category, create_transaction, list_categories, list_transactions
from lobohub.api.routes.families import list_members
from lobohub.api.routes.lists import (
    create_item,
    create_list,
    create_list_item,
    delete_list_item,
    update_list_item,
)
from lobohub.api.routes.tasks import create_task, update_task
from lobohub.models import (
    BudgetCategory,
    BudgetTransactionType,
    Family,
    FamilyAchievement,
    ShoppingList,
    TaskStatus,
    User,
)
from lobohub.schemas.budget import BudgetCategoryCreateRequest, BudgetTransactionCreateRequest
from lobohub.schemas.lists import (
    ListCreateRequest,
    ListItemCreateForListRequest,
    ListItemCreateRequest,
    ListItemUpdateRequest,
)
from lobohub.schemas.tasks import TaskCreateRequest, TaskUpdateRequest


def _ids(badges: list) -> set[str]:
    return {badge.id for badge in badges}


def test_creating_completed_task_unlocks_first_task(db: Session, family: Family, user: User) -> None:
    result = create_task(
        payload=TaskCreateRequest(title="Dishes", status=TaskStatus.COMPLETE),
        db=db,
        user=user,
        family=family,
    )

    assert result.status == TaskStatus.COMPLETE
    assert result.completed_by_user_id == user.id
    assert result.completed_at is not None
    assert "first_task" in _ids(result.new_achievements)


def test_completing_task_via_update(db: Session, family: Family, user: User) -> None:
    created = create_task(payload=TaskCreateRequest(title="Laundry"), db=db, user=user, family=family)
    assert created.new_achievements == []

    completed = update_task(
        task_id=created.id,
        payload=TaskUpdateRequest(status=TaskStatus.COMPLETE),
        db=db,
        user=user,
        family=family,
    )
    assert "first_task" in _ids(completed.new_achievements)

    reopened = update_task(
        task_id=created.id,
        payload=TaskUpdateRequest(status=TaskStatus.PENDING),
        db=db,
        user=user,
        family=family,
    )
    assert reopened.completed_at is None
    assert reopened.completed_by_user_id is None
    assert reopened.new_achievements == []


def test_task_from_other_family_is_not_found(db: Session, family: Family, user: User) -> None:
    created = create_task(payload=TaskCreateRequest(title="Laundry"), db=db, user=user, family=family)
    other = Family(name="Other", invite_code="OTHER123")
    db.add(other)
    db.flush()

    with pytest.raises(HTTPException) as exc_info:
        update_task(task_id=created.id, payload=TaskUpdateRequest(title="x"), db=db, user=user, family=other)
    assert exc_info.value.status_code == 404


def test_list_completes_when_every_item_is_done(db: Session, family: Family, user: User) -> None:
    created = create_list(payload=ListCreateRequest(title="Groceries"), db=db, user=user, family=family)
    assert _ids(created.new_achievements) == {"list_creator"}

    milk = create_list_item(list_id=created.id, payload=ListItemCreateRequest(title="Milk"), db=db, family=family)
    eggs = create_list_item(list_id=created.id, payload=ListItemCreateRequest(title="Eggs"), db=db, family=family)

    update_list_item(item_id=milk.id, payload=ListItemUpdateRequest(completed=True), db=db, user=user, family=family)
    shopping_list = db.get(ShoppingList, created.id)
    assert shopping_list is not None
    assert shopping_list.completed_at is None

    update_list_item(item_id=eggs.id, payload=ListItemUpdateRequest(completed=True), db=db, user=user, family=family)
    assert shopping_list.completed_at is not None

    create_list_item(list_id=created.id, payload=ListItemCreateRequest(title="Bread"), db=db, family=family)
    assert shopping_list.completed_at is None


def test_deleting_last_open_item_completes_list(db: Session, family: Family, user: User) -> None:
    finished_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    for index in range(9):
        db.add(ShoppingList(family_id=family.id, user_id=user.id, title=f"Week {index}", completed_at=finished_at))
    db.flush()

    created = create_list(payload=ListCreateRequest(title="Groceries"), db=db, user=user, family=family)
    milk = create_list_item(list_id=created.id, payload=ListItemCreateRequest(title="Milk"), db=db, family=family)
    eggs = create_list_item(list_id=created.id, payload=ListItemCreateRequest(title="Eggs"), db=db, family=family)
    update_list_item(item_id=milk.id, payload=ListItemUpdateRequest(completed=True), db=db, user=user, family=family)

    response = delete_list_item(item_id=eggs.id, db=db, user=user, family=family)

    assert response.status_code == 204
    shopping_list = db.get(ShoppingList, created.id)
    assert shopping_list is not None
    assert shopping_list.completed_at is not None
    unlocked = db.scalars(
        select(FamilyAchievement.badge_id).where(FamilyAchievement.family_id == family.id),
    ).all()
    assert "organized_shopper" in unlocked


def test_create_item_by_list_id(db: Session, family: Family, user: User) -> None:
    created = create_list(payload=ListCreateRequest(title="Hardware"), db=db, user=user, family=family)

    item = create_item(
        payload=ListItemCreateForListRequest(list_id=created.id, title="Nails", quantity="1 box"),
        db=db,
        family=family,
    )
    assert item.list_id == created.id
    assert item.completed is False

    other = Family(name="Other", invite_code="OTHER123")
    db.add(other)
    db.flush()
    with pytest.raises(HTTPException) as exc_info:
        create_item(payload=ListItemCreateForListRequest(list_id=created.id, title="Screws"), db=db, family=other)
    assert exc_info.value.status_code == 404


def _category(db: Session, family: Family, user: User, name: str = "Groceries") -> int:
    created = create_category(
        payload=BudgetCategoryCreateRequest(name=name, monthly_limit=Decimal("400.00")),
        db=db,
        user=user,
        family=family,
    )
    return created.id


def test_budget_categories_are_unique_per_family(db: Session, family: Family, user: User) -> None:
    _category(db, family, user, "Groceries")
    _category(db, family, user, "Fuel")

    with pytest.raises(HTTPException) as exc_info:
        _category(db, family, user, "Groceries")
    assert exc_info.value.status_code == 409

    categories = list_categories(db=db, family=family)
    assert [category.name for category in categories] == ["Fuel", "Groceries"]
    assert categories[1].color == "#3b82f6"
    assert categories[1].monthly_limit == Decimal("400.00")


def test_budget_transaction_unlocks_budget_tracker(db: Session, family: Family, user: User) -> None:
    payload = BudgetTransactionCreateRequest(
        category_id=_category(db, family, user),
        amount=Decimal("42.50"),
        description="Weekly shop",
        type=BudgetTransactionType.EXPENSE,
    )

    first = create_transaction(payload=payload, db=db, user=user, family=family)
    second = create_transaction(payload=payload, db=db, user=user, family=family)

    assert _ids(first.new_achievements) == {"budget_tracker"}
    assert second.new_achievements == []
    assert first.category_id == payload.category_id
    assert len(list_transactions(db=db, family=family)) == 2


def test_budget_transaction_needs_family_category(db: Session, family: Family, user: User) -> None:
    other = Family(name="Other", invite_code="OTHER123")
    db.add(other)
    db.flush()
    foreign = BudgetCategory(family_id=other.id, user_id=user.id, name="Theirs")
    db.add(foreign)
    db.flush()
    payload = BudgetTransactionCreateRequest(
        category_id=foreign.id,
        amount=Decimal("1.00"),
        description="Snack",
        type=BudgetTransactionType.EXPENSE,
    )

    with pytest.raises(HTTPException) as exc_info:
        create_transaction(payload=payload, db=db, user=user, family=family)
    assert exc_info.value.status_code == 404


def test_members_of_other_family_are_hidden(db: Session, family: Family, user: User) -> None:
    members = list_members(family_id=family.id, db=db, user=user)
    assert [member.email for member in members.members] == ["parent@test.com"]

    with pytest.raises(HTTPException) as exc_info:
        list_members(family_id=family.id + 1, db=db, user=user)
    assert exc_info.value.status_code == 404
