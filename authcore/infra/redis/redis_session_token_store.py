# comments in English; reST docstrings
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

import redis  # type: ignore[import-untyped]

from authcore.core.security import as_utc
from authcore.services._shared.ports.session_token_store import SessionRecord

T = TypeVar("T")

# WATCH/EXEC attempts before giving up on a contended session.
WATCH_RETRIES = 5


def _s(value: Any, default: str = "") -> str:
    """Decode a Redis reply that may be ``bytes`` (``decode_responses=False``)."""
    if value is None:
        return default
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


@dataclass(slots=True)
class RedisSessionTokenStore:
    """
    Redis-backed session store with atomic conditional rotation.

    Layout
    ------
    - ``st:tok:<token>``: hash with ``id``, ``user_id``, ``token``,
      ``last_activity_at``, ``expires_at``, ``created_at`` (ISO-8601 UTC).
    - ``st:id:<id>``: current token of session ``id``.
    - ``st:seq``: id sequence.

    Both keys carry a TTL of ``expires_at - last_activity_at`` so Redis drops
    sessions that are never refreshed again.

    :param r: A Redis client (already connected).
    :param watch_retries: Optimistic-lock attempts per write before a
        :class:`redis.RedisError` is raised.
    """

    r: redis.Redis
    prefix: str = "st"
    watch_retries: int = WATCH_RETRIES

    # -------------------- helpers --------------------

    def _kt(self, token: str) -> str:
        return f"{self.prefix}:tok:{token}"

    def _ki(self, session_id: int) -> str:
        return f"{self.prefix}:id:{session_id}"

    @staticmethod
    def _ttl(last_activity_at: datetime, expires_at: datetime) -> int:
        return max(1, int((as_utc(expires_at) - as_utc(last_activity_at)).total_seconds()))

    @staticmethod
    def _mapping(record: SessionRecord) -> dict[str, str]:
        return {
            "id": str(record.id),
            "user_id": str(record.user_id),
            "token": record.token,
            "last_activity_at": as_utc(record.last_activity_at).isoformat(),
            "expires_at": as_utc(record.expires_at).isoformat(),
            "created_at": as_utc(record.created_at).isoformat(),
        }

    @staticmethod
    def _from_hash(h: dict[Any, Any]) -> SessionRecord | None:
        if not h:
            return None
        data = {_s(k): _s(v) for k, v in h.items()}
        return SessionRecord(
            id=int(data["id"]),
            user_id=int(data["user_id"]),
            token=data["token"],
            last_activity_at=datetime.fromisoformat(data["last_activity_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    def _stage(self, pipe: Any, record: SessionRecord) -> None:
        """Queue writes for ``record`` on a MULTI pipeline."""
        ttl = self._ttl(record.last_activity_at, record.expires_at)
        pipe.hset(self._kt(record.token), mapping=self._mapping(record))
        pipe.expire(self._kt(record.token), ttl)
        pipe.set(self._ki(record.id), record.token, ex=ttl)

    # -------------------- API ------------------------

    def create(
        self,
        *,
        user_id: int,
        token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        if self.r.exists(self._kt(token)):
            raise ValueError("Session token already exists")
        record = SessionRecord(
            id=int(self.r.incr(f"{self.prefix}:seq")),
            user_id=user_id,
            token=token,
            last_activity_at=as_utc(last_activity_at),
            expires_at=as_utc(expires_at),
            created_at=as_utc(last_activity_at),
        )
        with self.r.pipeline(transaction=True) as p:
            self._stage(p, record)
            p.execute()
        return record

    def find_by_token(self, token: str) -> SessionRecord | None:
        return self._from_hash(self.r.hgetall(self._kt(token)))

    def update(
        self,
        session_id: int,
        *,
        token: str | None = None,
        last_activity_at: datetime | None = None,
        expires_at: datetime | None = None,
    ) -> SessionRecord | None:
        changes: dict[str, Any] = {
            k: v
            for k, v in (
                ("token", token),
                ("last_activity_at", last_activity_at),
                ("expires_at", expires_at),
            )
            if v is not None
        }
        return self._swap(session_id, expected_token=None, changes=changes)

    def rotate(
        self,
        session_id: int,
        *,
        expected_token: str,
        new_token: str,
        last_activity_at: datetime,
        expires_at: datetime,
    ) -> bool:
        """
        Replace the token of ``session_id`` only if it still equals ``expected_token``.

        Uses WATCH/MULTI/EXEC (optimistic locking): a concurrent writer makes
        ``EXEC`` fail with :class:`redis.WatchError` and the check is re-run,
        at which point the stale ``expected_token`` no longer matches.
        """
        changes = {
            "token": new_token,
            "last_activity_at": last_activity_at,
            "expires_at": expires_at,
        }
        return self._swap(session_id, expected_token=expected_token, changes=changes) is not None

    def _transact(self, attempt: Callable[[Any], T]) -> T:
        """
        Run ``attempt`` on a fresh pipeline, retrying when a watched key changes.

        :raises redis.RedisError: When every attempt lost to a concurrent writer.
        """
        for _ in range(self.watch_retries):
            try:
                with self.r.pipeline() as p:
                    return attempt(p)
            except redis.WatchError:
                continue
        raise redis.RedisError(f"Session store contention after {self.watch_retries} attempts")

    def _swap(
        self,
        session_id: int,
        *,
        expected_token: str | None,
        changes: dict[str, Any],
    ) -> SessionRecord | None:
        k_id = self._ki(session_id)

        def attempt(p: Any) -> SessionRecord | None:
            p.watch(k_id)
            current_token = _s(p.get(k_id)) or None
            if current_token is None or (
                expected_token is not None and current_token != expected_token
            ):
                p.unwatch()
                return None

            k_old = self._kt(current_token)
            p.watch(k_old)
            current = self._from_hash(p.hgetall(k_old))
            if current is None:
                p.unwatch()
                return None

            updated = SessionRecord(
                id=current.id,
                user_id=current.user_id,
                token=changes.get("token", current.token),
                last_activity_at=as_utc(changes.get("last_activity_at", current.last_activity_at)),
                expires_at=as_utc(changes.get("expires_at", current.expires_at)),
                created_at=current.created_at,
            )

            p.multi()
            if updated.token != current.token:
                p.delete(k_old)
            self._stage(p, updated)
            p.execute()
            return updated

        return self._transact(attempt)

    def delete_by_id(self, session_id: int) -> int:
        k_id = self._ki(session_id)

        def attempt(p: Any) -> int:
            p.watch(k_id)
            token = _s(p.get(k_id)) or None
            if token is None:
                p.unwatch()
                return 0
            k_tok = self._kt(token)
            p.watch(k_tok)
            p.multi()
            p.delete(k_tok)
            p.delete(k_id)
            removed, _ = p.execute()
            return int(removed)

        return self._transact(attempt)

    def delete_by_token(self, token: str) -> int:
        """
        Delete the session whose current token is ``token``.

        The id index is dropped only while it still points at ``token``; a
        rotation that lands mid-call forces a retry, which then finds nothing.
        """
        k_tok = self._kt(token)

        def attempt(p: Any) -> int:
            p.watch(k_tok)
            session_id = _s(p.hget(k_tok, "id")) or None
            if session_id is None:
                p.unwatch()
                return 0
            k_id = self._ki(int(session_id))
            p.watch(k_id)
            owns_index = _s(p.get(k_id)) == token
            p.multi()
            p.delete(k_tok)
            if owns_index:
                p.delete(k_id)
            return int(p.execute()[0])

        return self._transact(attempt)
