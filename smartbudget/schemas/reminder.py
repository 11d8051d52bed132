"""Pydantic schemas for payment reminders."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class ReminderCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    date: dt.date
    time: str = Field(pattern=TIME_PATTERN, description="24-hour HH:MM")
    description: str | None = None


class ReminderUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    date: dt.date | None = None
    time: str | None = Field(default=None, pattern=TIME_PATTERN)
    description: str | None = None
    notified: bool | None = None


class ReminderOut(BaseModel):
    id: int
    title: str
    date: dt.date
    time: str
    description: str | None = None
    notified: bool
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class ReminderClaim(BaseModel):
    """Result of trying to take the single notification slot for a reminder."""

    id: int
    claimed: bool
