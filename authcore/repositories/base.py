"""Generic repository base for SQLAlchemy 2.x.

Repositories are persistence-only: they stage ORM changes and run
conditional DML, while the Unit of Work owns commit and rollback.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Delete, Update
from sqlalchemy.orm import Session

from authcore.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Shared plumbing for the account and session repositories.

    Subclasses set ``model`` and list the keys :meth:`assign_updates` may
    touch in ``_updatable_fields``. An empty whitelist rejects every update.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """
        :param session: Session shared across the Unit of Work scope; the
            Flask-scoped session is used when omitted.
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    def _updatable_fields(self) -> set[str]:
        return set()

    # --------------------------------- ORM -----------------------------------

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so its primary key is populated.

        :raises sqlalchemy.exc.IntegrityError: On constraint violations.
        """
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: int) -> E | None:
        return self.session.get(self.model, entity_id)

    def flush(self) -> None:
        self.session.flush()

    def assign_updates(self, instance: E, fields: Mapping[str, Any]) -> E:
        """Assign whitelisted ``fields`` on ``instance`` and flush.

        Attributes are set one by one so model ``@validates`` hooks run.

        :raises ValueError: When a key is not in ``_updatable_fields``.
        """
        allowed = self._updatable_fields()
        rejected = sorted(set(fields) - allowed)
        if rejected:
            raise ValueError(f"Unknown or non-updatable fields: {rejected}")
        for key, value in fields.items():
            setattr(instance, key, value)
        self.flush()
        return instance

    # --------------------------------- DML -----------------------------------

    def execute_dml(self, stmt: Update | Delete) -> int:
        """Run a Core ``UPDATE``/``DELETE`` and return the affected row count.

        Pending ORM changes are flushed first. Cached instances are expired
        afterwards so later reads in the same unit of work see the new state.
        """
        self.flush()
        result = self.session.execute(stmt.execution_options(synchronize_session=False))
        self.session.expire_all()
        return int(result.rowcount or 0)
