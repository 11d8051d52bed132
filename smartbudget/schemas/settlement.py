"""Pydantic schemas for balances owed to or by other people."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class SettlementCreate(BaseModel):
    person: str = Field(min_length=1, max_length=255)
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    description: str | None = None
    date: datetime | None = None


class SettlementUpdate(BaseModel):
    person: str | None = Field(default=None, min_length=1, max_length=255)
    amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    description: str | None = None
    date: datetime | None = None
    settled: bool | None = None


class SettlementOut(BaseModel):
    id: int
    person: str
    amount: Decimal
    description: str | None = None
    date: datetime
    settled: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SettlementSummary(BaseModel):
    outstanding_total: Decimal
    settled_total: Decimal
    by_person: dict[str, Decimal]
