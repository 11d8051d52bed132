from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from smartbudget.core.clock import utcnow
from smartbudget.db.base import Base


class OneTimeCode(Base):
    """
    A six-digit code proving control of an email address.

    Lifecycle
    ---------
    1. Code requested -> row inserted (is_used=False); older unused rows for
       the same email are deleted.
    2. Code verified  -> is_used flipped by a conditional UPDATE, exactly once.
    3. Expired / used rows are inert and can be purged at any time.
    """

    __tablename__ = "otp_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<OneTimeCode(id={self.id}, email={self.email!r}, "
            f"expires_at={self.expires_at}, is_used={self.is_used})>"
        )


Index("ix_otp_codes_email_code", OneTimeCode.email, OneTimeCode.code)
