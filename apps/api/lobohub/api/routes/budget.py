from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from lobohub.api.deps import CurrentFamily, CurrentUser, DBSession
from lobohub.models import BudgetCategory, BudgetTransaction
from lobohub.schemas.achievements import BadgeOut
from lobohub.schemas.budget import (
    BudgetCategoryCreateRequest,
    BudgetCategoryOut,
    BudgetTransactionCreateRequest,
    BudgetTransactionOut,
)
from lobohub.services.achievement_system import AchievementAction
from lobohub.services.achievements import AchievementCheckResult, record_action

router = APIRouter(prefix="/api/budget", tags=["budget"])
logger = logging.getLogger("lobohub.budget")


def category_out(row: BudgetCategory) -> BudgetCategoryOut:
    return BudgetCategoryOut(
        id=row.id,
        family_id=row.family_id,
        user_id=row.user_id,
        name=row.name,
        monthly_limit=row.monthly_limit,
        color=row.color,
    )


def transaction_out(row: BudgetTransaction, result: AchievementCheckResult | None = None) -> BudgetTransactionOut:
    return BudgetTransactionOut(
        id=row.id,
        family_id=row.family_id,
        user_id=row.user_id,
        category_id=row.category_id,
        amount=row.amount,
        description=row.description,
        type=row.type,
        date=row.date,
        new_achievements=[BadgeOut.from_badge(badge) for badge in result.new_badges] if result else [],
    )


@router.get("/categories", response_model=list[BudgetCategoryOut])
def list_categories(db: DBSession, family: CurrentFamily) -> list[BudgetCategoryOut]:
    rows = db.scalars(
        select(BudgetCategory).where(BudgetCategory.family_id == family.id).order_by(BudgetCategory.name.asc()),
    ).all()
    return [category_out(row) for row in rows]


@router.post("/categories", response_model=BudgetCategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: BudgetCategoryCreateRequest,
    db: DBSession,
    user: CurrentUser,
    family: CurrentFamily,
) -> BudgetCategoryOut:
    row = BudgetCategory(
        family_id=family.id,
        user_id=user.id,
        name=payload.name.strip(),
        monthly_limit=payload.monthly_limit,
        color=payload.color.lower(),
    )
    try:
        with db.begin_nested():
            db.add(row)
    except IntegrityError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category already exists") from exc
    db.commit()
    logger.info("budget.category_created", extra={"family_id": family.id, "user_id": user.id})
    return category_out(row)


@router.get("/transactions", response_model=list[BudgetTransactionOut])
def list_transactions(db: DBSession, family: CurrentFamily) -> list[BudgetTransactionOut]:
    rows = db.scalars(
        select(BudgetTransaction)
        .where(BudgetTransaction.family_id == family.id)
        .order_by(BudgetTransaction.date.desc(), BudgetTransaction.id.desc()),
    ).all()
    return [transaction_out(row) for row in rows]


@router.post("/transactions", response_model=BudgetTransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(
    payload: BudgetTransactionCreateRequest,
    db: DBSession,
    user: CurrentUser,
    family: CurrentFamily,
) -> BudgetTransactionOut:
    category = db.get(BudgetCategory, payload.category_id)
    if category is None or category.family_id != family.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget category not found")

    now = datetime.now(UTC)
    row = BudgetTransaction(
        family_id=family.id,
        user_id=user.id,
        category_id=category.id,
        amount=payload.amount,
        description=payload.description,
        type=payload.type,
        date=payload.date or now,
    )
    db.add(row)
    db.flush()
    result = record_action(
        db,
        family_id=family.id,
        user_id=user.id,
        action=AchievementAction.BUDGET_TRANSACTION,
        data={"transaction_id": row.id},
        timestamp=now,
    )
    db.commit()
    return transaction_out(row, result)
