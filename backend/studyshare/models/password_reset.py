"""
StudyShare Backend — Password Reset Code Model
================================================

What:  Short-lived 6-digit codes emailed to users who forgot their password.
Lifecycle:
    1. forgot-password deletes older codes for the email and inserts a new one
    2. reset-password accepts it once, before expires_at, then sets used=True
    Expired rows are harmless: every lookup filters on expires_at > now.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from studyshare.database import Base


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    reset_code: Mapped[str] = mapped_column(String(12), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_password_resets_email_code", "email", "reset_code"),
        Index("idx_password_resets_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<PasswordReset(email='{self.email}', used={self.used}, expires_at='{self.expires_at}')>"
