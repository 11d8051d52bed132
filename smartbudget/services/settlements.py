"""Balances owed between the user and other people."""

from collections import defaultdict
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smartbudget.core.clock import to_naive_utc, utcnow
from smartbudget.core.exceptions import NotFound
from smartbudget.db.models.settlement import Settlement
from smartbudget.schemas.settlement import SettlementCreate, SettlementSummary, SettlementUpdate


class SettlementService:
    def __init__(self, session: AsyncSession, user_id: int):
        self.session = session
        self.user_id = user_id

    async def list_all(self) -> list[Settlement]:
        rows = await self.session.scalars(
            select(Settlement)
            .where(Settlement.user_id == self.user_id)
            .order_by(Settlement.date.desc(), Settlement.id.desc())
        )
        return list(rows.all())

    async def get(self, settlement_id: int) -> Settlement:
        settlement = await self.session.scalar(
            select(Settlement).where(Settlement.id == settlement_id, Settlement.user_id == self.user_id)
        )
        if not settlement:
            raise NotFound("Settlement")
        return settlement

    async def create(self, payload: SettlementCreate) -> Settlement:
        settlement = Settlement(
            user_id=self.user_id,
            person=payload.person.strip(),
            amount=payload.amount,
            description=payload.description,
            date=to_naive_utc(payload.date) or utcnow(),
        )
        self.session.add(settlement)
        await self.session.commit()
        await self.session.refresh(settlement)
        return settlement

    async def update(self, settlement_id: int, payload: SettlementUpdate) -> Settlement:
        settlement = await self.get(settlement_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is None and field != "description":
                continue
            setattr(settlement, field, to_naive_utc(value) if field == "date" else value)
        await self.session.commit()
        await self.session.refresh(settlement)
        return settlement

    async def delete(self, settlement_id: int) -> None:
        settlement = await self.get(settlement_id)
        await self.session.delete(settlement)
        await self.session.commit()

    async def summary(self) -> SettlementSummary:
        outstanding = Decimal("0")
        settled = Decimal("0")
        by_person: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        for s in await self.list_all():
            if s.settled:
                settled += s.amount
            else:
                outstanding += s.amount
                by_person[s.person] += s.amount
        return SettlementSummary(outstanding_total=outstanding, settled_total=settled, by_person=dict(by_person))
