"""Repository for refresh-token session records."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, cast

from sqlalchemy import delete, select, update

from authcore.models.session_token import SessionToken
from authcore.repositories.base import BaseRepository


class SessionTokenRepository(BaseRepository[SessionToken]):
    """Persistence-only repository for :class:`SessionToken`."""

    model = SessionToken

    def _updatable_fields(self) -> set[str]:
        return {"token", "last_activity_at", "expires_at"}

    def create(
        self,
        *,
        user_id: int,
        token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> SessionToken:
        return self.add(
            SessionToken(
                user_id=user_id,
                token=token,
                last_activity_at=last_activity_at,
                expires_at=expires_at,
            )
        )

    def find_by_token(self, token: str) -> SessionToken | None:
        stmt = select(SessionToken).where(SessionToken.token == token)
        return cast(SessionToken | None, self.session.execute(stmt).scalars().first())

    def update_fields(self, session_id: int, fields: Mapping[str, Any]) -> SessionToken | None:
        """Apply a partial update; ``None`` when the record no longer exists."""
        record = self.get(session_id)
        if record is None:
            return None
        return self.assign_updates(record, fields)

    def rotate(
        self,
        session_id: int,
        *,
        expected_token: str,
        new_token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> int:
        """
        Swap the stored token only if it still equals ``expected_token``.

        :returns: Affected row count (``0`` when another caller rotated first
            or the record was deleted).
        :rtype: int
        """
        stmt = (
            update(SessionToken)
            .where(SessionToken.id == session_id, SessionToken.token == expected_token)
            .values(token=new_token, last_activity_at=last_activity_at, expires_at=expires_at)
        )
        return self.execute_dml(stmt)

    def delete_by_id(self, session_id: int) -> int:
        return self.execute_dml(delete(SessionToken).where(SessionToken.id == session_id))

    def delete_by_token(self, token: str) -> int:
        return self.execute_dml(delete(SessionToken).where(SessionToken.token == token))
