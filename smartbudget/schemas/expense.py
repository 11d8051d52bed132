"""Pydantic schemas for expense tracking."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from smartbudget.db.models.expense import ExpenseCategory


class ExpenseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    category: ExpenseCategory
    date: datetime | None = None
    description: str | None = None


class ExpenseUpdate(BaseModel):
    """Partial update; omitted fields are left untouched."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    category: ExpenseCategory | None = None
    date: datetime | None = None
    description: str | None = None


class ExpenseOut(BaseModel):
    id: int
    title: str
    amount: Decimal
    category: ExpenseCategory
    date: datetime
    description: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExpenseStats(BaseModel):
    total: Decimal
    count: int
    average: Decimal
    by_category: dict[str, Decimal]
