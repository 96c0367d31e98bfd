"""
SQLAlchemy implementations of :class:`~authcore.uow.base.UnitOfWork`.

Both units of work run on the Flask-scoped ``db.session`` so repositories,
the SQL session store and Flask request teardown see the same transaction.
"""

from __future__ import annotations

from contextlib import suppress

from flask import current_app
from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction

from authcore.core.extensions import db
from authcore.repositories import AccountRepository, SessionTokenRepository
from authcore.uow.base import UnitOfWork


def _bind_repositories(uow: UnitOfWork, session: Session) -> None:
    uow.accounts = AccountRepository(session=session)
    uow.session_tokens = SessionTokenRepository(session=session)


class SQLAlchemyUnitOfWork(UnitOfWork):
    """Read-write unit of work; the session begins lazily on first use."""

    def __init__(self) -> None:
        self.session: Session = db.session
        _bind_repositories(self, self.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        return self

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(UnitOfWork):
    """
    Read-only Unit of Work backed by the Flask-scoped SQLAlchemy session.

    On enter it installs two write guards (an ORM ``before_flush`` hook and a
    ``before_cursor_execute`` hook rejecting DML/DDL) and, when it owns the
    transaction on a server database, hardens it with ``SET TRANSACTION``
    directives. On exit it always rolls back and removes the guards, so any
    ORM instance loaded inside the block is expired afterwards: build DTOs
    before leaving the ``with`` statement.

    Parameters
    ----------
    isolation_level:
        Optional isolation hint such as ``"READ COMMITTED"``; ``None`` keeps
        the connection default.
    enforce_db_readonly:
        Issue ``SET TRANSACTION READ ONLY`` on PostgreSQL/MySQL/MariaDB.

    Notes
    -----
    SQLite accepts neither directive; there only the guards apply.
    """

    _WRITE_PREFIXES = (
        "insert",
        "update",
        "delete",
        "merge",
        "alter",
        "drop",
        "truncate",
        "create",
        "replace",
        "grant",
        "revoke",
    )
    _KNOWN_ISOLATION = ("READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE", "READ UNCOMMITTED")
    _READONLY_DIALECTS = ("postgresql", "mysql", "mariadb")

    def __init__(
        self,
        *,
        isolation_level: str | None = "READ COMMITTED",
        enforce_db_readonly: bool = True,
    ) -> None:
        self.session: Session = db.session
        _bind_repositories(self, self.session)
        self.isolation_level = isolation_level
        self.enforce_db_readonly = enforce_db_readonly
        self._conn: Connection | None = None
        self._txn_ctx: SessionTransaction | None = None
        self._guards: tuple | None = None

    # ----------------------------- Context Manager -----------------------------

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        self._txn_ctx = None
        try:
            txn_ctx = self.session.begin()
            txn_ctx.__enter__()
            self._txn_ctx = txn_ctx
        except InvalidRequestError:
            # A transaction is already running (autobegin or an outer test
            # fixture); attach to it and rely on the guards only.
            pass

        self._conn = self.session.connection()
        self._install_guards()
        if self._txn_ctx is not None and self._conn.dialect.name != "sqlite":
            self._harden_transaction(self._conn.dialect.name)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._txn_ctx is not None:
                with suppress(SQLAlchemyError):
                    self.session.rollback()
                try:
                    self._txn_ctx.__exit__(exc_type, exc, tb)
                finally:
                    self._txn_ctx = None
        finally:
            self._remove_guards()
            self._conn = None

    # ----------------------------- Public API ---------------------------------

    def commit(self) -> None:
        """
        Disallow commit in read-only Unit of Work.

        :raises RuntimeError: always, to prevent accidental writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    # ----------------------------- Internals ----------------------------------

    def _harden_transaction(self, dialect: str) -> None:
        try:
            if self.isolation_level:
                iso = self.isolation_level.upper().strip()
                if iso not in self._KNOWN_ISOLATION:
                    current_app.logger.warning("Unknown isolation_level '%s'; attempting as-is.", iso)
                self.session.execute(text(f"SET TRANSACTION ISOLATION LEVEL {iso}"))
            if self.enforce_db_readonly and dialect in self._READONLY_DIALECTS:
                self.session.execute(text("SET TRANSACTION READ ONLY"))
        except SQLAlchemyError as exc:
            current_app.logger.warning(
                "SET TRANSACTION directives failed (%s). Falling back to guards-only.", exc
            )

    def _install_guards(self) -> None:
        if self._guards is not None:
            return

        def _before_flush(session, flush_context, instances):
            if session.new or session.dirty or session.deleted:
                raise RuntimeError(
                    "Read-only UnitOfWork: ORM flush blocked (new/dirty/deleted objects present)."
                )

        def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            verb = statement.lstrip().split(None, 1)[0].lower() if statement else ""
            if verb.startswith(self._WRITE_PREFIXES):
                raise RuntimeError(f"Read-only UnitOfWork: SQL statement blocked: {verb.upper()}")

        target = self._conn if self._conn is not None else self.session.get_bind()
        event.listen(self.session, "before_flush", _before_flush)
        event.listen(target, "before_cursor_execute", _before_cursor_execute)
        self._guards = (target, _before_flush, _before_cursor_execute)

    def _remove_guards(self) -> None:
        if self._guards is None:
            return
        target, before_flush, before_cursor_execute = self._guards
        with suppress(InvalidRequestError):
            event.remove(self.session, "before_flush", before_flush)
        with suppress(InvalidRequestError):
            event.remove(target, "before_cursor_execute", before_cursor_execute)
        self._guards = None
