"""Session record backing one issued refresh token."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authcore.core.extensions import db

from .base import CreatedAtMixin, PKMixin, ReprMixin

if TYPE_CHECKING:
    from .account import Account


class SessionToken(PKMixin, ReprMixin, CreatedAtMixin, db.Model):
    """
    Server-side state for a refresh token.

    ``token`` always holds the latest refresh token string; rotation replaces
    it in place so the previous value no longer resolves to a row.
    """

    __tablename__ = "session_tokens"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(512), nullable=False)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    account: Mapped[Account] = relationship(back_populates="sessions")

    __table_args__ = (
        UniqueConstraint("token", name="uq_session_tokens_token"),
        CheckConstraint("expires_at >= last_activity_at", name="expiry_after_activity"),
    )
