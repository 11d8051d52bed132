"""Reminder routes, including the due-list and notification claim used by polling clients."""

from datetime import datetime

from fastapi import APIRouter, Depends, status

from smartbudget.api import deps
from smartbudget.schemas.common import Message
from smartbudget.schemas.reminder import ReminderClaim, ReminderCreate, ReminderOut, ReminderUpdate
from smartbudget.services.reminders import ReminderService

router = APIRouter(prefix="/api/reminders", tags=["reminders"])


@router.get("", response_model=list[ReminderOut])
async def list_reminders(service: ReminderService = Depends(deps.get_reminder_service)):
    return await service.list_all()


@router.post("", response_model=ReminderOut, status_code=status.HTTP_201_CREATED)
async def create_reminder(payload: ReminderCreate, service: ReminderService = Depends(deps.get_reminder_service)):
    return await service.create(payload)


@router.get("/due", response_model=list[ReminderOut])
async def due_reminders(
    now: datetime | None = None,
    service: ReminderService = Depends(deps.get_reminder_service),
):
    """Unnotified reminders that are due at `now` (the client's local time; server UTC if omitted)."""

    return await service.due(now)


@router.post("/{reminder_id}/notify", response_model=ReminderClaim)
async def claim_reminder(reminder_id: int, service: ReminderService = Depends(deps.get_reminder_service)):
    """Claim the notification for a reminder; `claimed` is true for exactly one caller."""

    return ReminderClaim(id=reminder_id, claimed=await service.claim_notification(reminder_id))


@router.put("/{reminder_id}", response_model=ReminderOut)
async def update_reminder(
    reminder_id: int,
    payload: ReminderUpdate,
    service: ReminderService = Depends(deps.get_reminder_service),
):
    return await service.update(reminder_id, payload)


@router.delete("/{reminder_id}", response_model=Message)
async def delete_reminder(reminder_id: int, service: ReminderService = Depends(deps.get_reminder_service)):
    await service.delete(reminder_id)
    return Message(message="Reminder deleted successfully.")
