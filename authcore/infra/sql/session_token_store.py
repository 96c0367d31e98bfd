"""SQLAlchemy-backed :class:`SessionTokenStore` over the ``session_tokens`` table."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from authcore.core.security import as_utc
from authcore.models.session_token import SessionToken
from authcore.services._shared.ports.session_token_store import SessionRecord
from authcore.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork


def to_record(row: SessionToken) -> SessionRecord:
    """Detach an ORM row into the store's read model (UTC-aware datetimes)."""
    return SessionRecord(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        last_activity_at=as_utc(row.last_activity_at),
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
    )


class SQLAlchemySessionTokenStore:
    """
    Session store running each call in its own read-write unit of work.

    Rotation is a single ``UPDATE ... WHERE id = :id AND token = :expected``,
    so the database serialises concurrent refreshes of the same token.
    """

    def create(
        self,
        *,
        user_id: int,
        token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        with SQLAlchemyUnitOfWork() as uow:
            row = uow.session_tokens.create(
                user_id=user_id,
                token=token,
                last_activity_at=last_activity_at,
                expires_at=expires_at,
            )
            return to_record(row)

    def find_by_token(self, token: str) -> SessionRecord | None:
        with SQLAlchemyUnitOfWork() as uow:
            row = uow.session_tokens.find_by_token(token)
            return to_record(row) if row is not None else None

    def update(
        self,
        session_id: int,
        *,
        token: str | None = None,
        last_activity_at: datetime | None = None,
        expires_at: datetime | None = None,
    ) -> SessionRecord | None:
        fields: dict[str, Any] = {
            k: v
            for k, v in (
                ("token", token),
                ("last_activity_at", last_activity_at),
                ("expires_at", expires_at),
            )
            if v is not None
        }
        with SQLAlchemyUnitOfWork() as uow:
            row = uow.session_tokens.update_fields(session_id, fields)
            return to_record(row) if row is not None else None

    def rotate(
        self,
        session_id: int,
        *,
        expected_token: str,
        new_token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> bool:
        with SQLAlchemyUnitOfWork() as uow:
            changed = uow.session_tokens.rotate(
                session_id,
                expected_token=expected_token,
                new_token=new_token,
                last_activity_at=last_activity_at,
                expires_at=expires_at,
            )
        return changed == 1

    def delete_by_id(self, session_id: int) -> int:
        with SQLAlchemyUnitOfWork() as uow:
            return uow.session_tokens.delete_by_id(session_id)

    def delete_by_token(self, token: str) -> int:
        with SQLAlchemyUnitOfWork() as uow:
            return uow.session_tokens.delete_by_token(token)
