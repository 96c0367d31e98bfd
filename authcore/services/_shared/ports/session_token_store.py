from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class SessionRecord:
    """
    Read-model for one refresh-token session.

    :ivar id: Store-assigned identifier.
    :ivar user_id: Owning account id.
    :ivar token: Current refresh token string (primary lookup key).
    :ivar last_activity_at: Last successful login or refresh (UTC).
    :ivar expires_at: Absolute expiry (UTC); never before ``last_activity_at``.
    :ivar created_at: Creation instant (UTC).
    """

    id: int
    user_id: int
    token: str
    last_activity_at: datetime
    expires_at: datetime
    created_at: datetime


class SessionTokenStore(Protocol):
    """
    Stateful store for refresh-token sessions.

    ``rotate`` MUST be atomic: the token is replaced only if the stored value
    still equals ``expected_token``.
    """

    def create(
        self,
        *,
        user_id: int,
        token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        """Persist a new session keyed by ``token``."""

    def find_by_token(self, token: str) -> SessionRecord | None:
        """Exact-match lookup; a rotated-away token resolves to ``None``."""

    def update(
        self,
        session_id: int,
        *,
        token: str | None = None,
        last_activity_at: datetime | None = None,
        expires_at: datetime | None = None,
    ) -> SessionRecord | None:
        """Partial update; ``None`` when the session no longer exists."""

    def rotate(
        self,
        session_id: int,
        *,
        expected_token: str,
        new_token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> bool:
        """Conditionally swap the token. :returns: True if this caller won."""

    def delete_by_id(self, session_id: int) -> int:
        """Delete by id. :returns: Number of sessions removed (0 or 1)."""

    def delete_by_token(self, token: str) -> int:
        """Delete by token. :returns: Number of sessions removed (0 or 1)."""


class InMemorySessionTokenStore:
    """
    In-memory session store with atomic rotation behaviour.

    .. note::
       Uses a threading lock to simulate atomicity in unit tests.
    """

    def __init__(self) -> None:
        self._by_id: dict[int, SessionRecord] = {}
        self._id_by_token: dict[str, int] = {}
        self._seq = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._by_id)

    def create(
        self,
        *,
        user_id: int,
        token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        with self._lock:
            if token in self._id_by_token:
                raise ValueError("Session token already exists")
            self._seq += 1
            record = SessionRecord(
                id=self._seq,
                user_id=user_id,
                token=token,
                last_activity_at=last_activity_at,
                expires_at=expires_at,
                created_at=last_activity_at,
            )
            self._by_id[record.id] = record
            self._id_by_token[token] = record.id
            return record

    def find_by_token(self, token: str) -> SessionRecord | None:
        with self._lock:
            session_id = self._id_by_token.get(token)
            return self._by_id.get(session_id) if session_id is not None else None

    def update(
        self,
        session_id: int,
        *,
        token: str | None = None,
        last_activity_at: datetime | None = None,
        expires_at: datetime | None = None,
    ) -> SessionRecord | None:
        with self._lock:
            current = self._by_id.get(session_id)
            if current is None:
                return None
            changes = {
                k: v
                for k, v in (
                    ("token", token),
                    ("last_activity_at", last_activity_at),
                    ("expires_at", expires_at),
                )
                if v is not None
            }
            return self._replace(current, **changes)

    def rotate(
        self,
        session_id: int,
        *,
        expected_token: str,
        new_token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> bool:
        with self._lock:
            current = self._by_id.get(session_id)
            if current is None or current.token != expected_token:
                return False
            self._replace(
                current,
                token=new_token,
                last_activity_at=last_activity_at,
                expires_at=expires_at,
            )
            return True

    def delete_by_id(self, session_id: int) -> int:
        with self._lock:
            record = self._by_id.pop(session_id, None)
            if record is None:
                return 0
            self._id_by_token.pop(record.token, None)
            return 1

    def delete_by_token(self, token: str) -> int:
        with self._lock:
            session_id = self._id_by_token.pop(token, None)
            if session_id is None:
                return 0
            self._by_id.pop(session_id, None)
            return 1

    # Caller holds the lock.
    def _replace(self, current: SessionRecord, **changes) -> SessionRecord:
        updated = replace(current, **changes)
        if updated.token != current.token:
            self._id_by_token.pop(current.token, None)
            self._id_by_token[updated.token] = updated.id
        self._by_id[updated.id] = updated
        return updated
