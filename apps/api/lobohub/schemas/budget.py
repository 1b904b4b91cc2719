from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from lobohub.models import DEFAULT_CATEGORY_COLOR, BudgetTransactionType
from lobohub.schemas.achievements import BadgeOut


class BudgetCategoryCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=100)
    monthly_limit: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2, alias="monthlyLimit")
    color: str = Field(default=DEFAULT_CATEGORY_COLOR, pattern=r"^#[0-9a-fA-F]{6}$")


class BudgetCategoryOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    family_id: int = Field(alias="familyId")
    user_id: int = Field(alias="userId")
    name: str
    monthly_limit: Decimal | None = Field(alias="monthlyLimit")
    color: str


class BudgetTransactionCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category_id: int = Field(alias="categoryId")
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    description: str = Field(min_length=1)
    type: BudgetTransactionType
    date: datetime | None = None


class BudgetTransactionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    family_id: int = Field(alias="familyId")
    user_id: int = Field(alias="userId")
    category_id: int = Field(alias="categoryId")
    amount: Decimal
    description: str
    type: BudgetTransactionType
    date: datetime
    new_achievements: list[BadgeOut] = Field(default_factory=list, alias="newAchievements")
