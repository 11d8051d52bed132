"""Expense CRUD, statistics, and file export, always scoped to one user."""

import csv
import io
import json
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smartbudget.core.clock import to_naive_utc, utcnow
from smartbudget.core.exceptions import NotFound
from smartbudget.db.models.expense import Expense
from smartbudget.schemas.expense import ExpenseCreate, ExpenseOut, ExpenseStats, ExpenseUpdate

CENTS = Decimal("0.01")
CSV_HEADERS = ["Title", "Amount", "Category", "Date", "Description"]


class ExpenseService:
    def __init__(self, session: AsyncSession, user_id: int):
        self.session = session
        self.user_id = user_id

    async def list_all(self) -> list[Expense]:
        rows = await self.session.scalars(
            select(Expense).where(Expense.user_id == self.user_id).order_by(Expense.date.desc(), Expense.id.desc())
        )
        return list(rows.all())

    async def get(self, expense_id: int) -> Expense:
        expense = await self.session.scalar(
            select(Expense).where(Expense.id == expense_id, Expense.user_id == self.user_id)
        )
        if not expense:
            raise NotFound("Expense")
        return expense

    async def create(self, payload: ExpenseCreate) -> Expense:
        expense = Expense(
            user_id=self.user_id,
            title=payload.title.strip(),
            amount=payload.amount,
            category=payload.category,
            date=to_naive_utc(payload.date) or utcnow(),
            description=payload.description,
        )
        self.session.add(expense)
        await self.session.commit()
        await self.session.refresh(expense)
        return expense

    async def update(self, expense_id: int, payload: ExpenseUpdate) -> Expense:
        expense = await self.get(expense_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is None and field != "description":
                continue
            setattr(expense, field, to_naive_utc(value) if field == "date" else value)
        await self.session.commit()
        await self.session.refresh(expense)
        return expense

    async def delete(self, expense_id: int) -> None:
        expense = await self.get(expense_id)
        await self.session.delete(expense)
        await self.session.commit()

    async def stats(self) -> ExpenseStats:
        expenses = await self.list_all()
        total = sum((e.amount for e in expenses), Decimal("0"))
        by_category: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        for e in expenses:
            by_category[e.category.value] += e.amount

        average = (total / len(expenses)).quantize(CENTS, rounding=ROUND_HALF_UP) if expenses else Decimal("0")
        return ExpenseStats(total=total, count=len(expenses), average=average, by_category=dict(by_category))

    async def export_csv(self) -> str:
        output = io.StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_ALL)
        writer.writerow(CSV_HEADERS)
        for e in await self.list_all():
            writer.writerow([e.title, str(e.amount), e.category.value, e.date.date().isoformat(), e.description or ""])
        return output.getvalue()

    async def export_json(self) -> str:
        items = [ExpenseOut.model_validate(e).model_dump(mode="json") for e in await self.list_all()]
        return json.dumps(items, indent=2)
