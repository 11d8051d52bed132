"""Reminders and the claim step that keeps polling clients from double-notifying."""

from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from smartbudget.core.clock import utcnow
from smartbudget.core.exceptions import NotFound
from smartbudget.db.models.reminder import Reminder
from smartbudget.schemas.reminder import ReminderCreate, ReminderUpdate

logger = structlog.get_logger(__name__)


class ReminderService:
    def __init__(self, session: AsyncSession, user_id: int):
        self.session = session
        self.user_id = user_id

    async def list_all(self) -> list[Reminder]:
        rows = await self.session.scalars(
            select(Reminder)
            .where(Reminder.user_id == self.user_id)
            .order_by(Reminder.date.asc(), Reminder.time.asc(), Reminder.id.asc())
        )
        return list(rows.all())

    async def get(self, reminder_id: int) -> Reminder:
        reminder = await self.session.scalar(
            select(Reminder).where(Reminder.id == reminder_id, Reminder.user_id == self.user_id)
        )
        if not reminder:
            raise NotFound("Reminder")
        return reminder

    async def create(self, payload: ReminderCreate) -> Reminder:
        reminder = Reminder(
            user_id=self.user_id,
            title=payload.title.strip(),
            date=payload.date,
            time=payload.time,
            description=payload.description,
        )
        self.session.add(reminder)
        await self.session.commit()
        await self.session.refresh(reminder)
        return reminder

    async def update(self, reminder_id: int, payload: ReminderUpdate) -> Reminder:
        reminder = await self.get(reminder_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is None and field != "description":
                continue
            setattr(reminder, field, value)
        await self.session.commit()
        await self.session.refresh(reminder)
        return reminder

    async def delete(self, reminder_id: int) -> None:
        reminder = await self.get(reminder_id)
        await self.session.delete(reminder)
        await self.session.commit()

    async def due(self, now: datetime | None = None) -> list[Reminder]:
        """Unnotified reminders whose date and time are at or before `now`."""

        now = (now or utcnow()).replace(tzinfo=None, second=0, microsecond=0)
        rows = await self.session.scalars(
            select(Reminder)
            .where(
                Reminder.user_id == self.user_id,
                Reminder.notified.is_(False),
                Reminder.date <= now.date(),
            )
            .order_by(Reminder.date.asc(), Reminder.time.asc(), Reminder.id.asc())
        )
        return [r for r in rows.all() if r.due_at <= now]

    async def claim_notification(self, reminder_id: int) -> bool:
        """Flip `notified` once; only the caller that flips it should notify."""

        await self.get(reminder_id)
        result = await self.session.execute(
            update(Reminder)
            .where(
                Reminder.id == reminder_id,
                Reminder.user_id == self.user_id,
                Reminder.notified.is_(False),
            )
            .values(notified=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        claimed = result.rowcount == 1
        logger.info("reminder.claim", reminder_id=reminder_id, claimed=claimed)
        return claimed
