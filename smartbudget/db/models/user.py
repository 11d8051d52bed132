from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from smartbudget.core.clock import utcnow
from smartbudget.db.base import Base


class User(Base):
    """Canonical user record every authentication path resolves to."""

    __tablename__ = "users"
    __table_args__ = (
        # A user always keeps at least one way to sign in.
        CheckConstraint(
            "password_hash IS NOT NULL OR otp_only OR external_id IS NOT NULL",
            name="ck_users_has_auth_path",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str | None] = mapped_column(String(255), unique=True, index=True, nullable=True)
    # stored lower-cased
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    otp_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash) and not self.otp_only

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, external_id={self.external_id!r})>"
