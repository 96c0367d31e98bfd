"""
Unit tests for SQLAlchemyReadOnlyUnitOfWork.

On SQLite no ``SET TRANSACTION`` directive is issued; the ORM flush guard and
the cursor-level DML guard are what keep the block read-only.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from authcore.models import Account
from authcore.uow import SQLAlchemyReadOnlyUnitOfWork as ROuow
from authcore.uow import SQLAlchemyUnitOfWork as RWuow
from tests.factories.account import AccountFactory


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_blocks_orm_flush_writes(self, app, db, session):
        """
        Ensure that attempting to flush ORM changes inside the RO UoW raises.
        """
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            # Add a transient object; any flush must be blocked.
            account = AccountFactory.build()  # not persisted
            uow.session.add(account)
            uow.session.flush()

    def test_blocks_core_dml(self, app, db, session):
        """
        Ensure that raw SQL DML is blocked inside the RO UoW.
        """
        with ROuow() as uow, pytest.raises(RuntimeError, match="SQL statement blocked"):
            uow.session.execute(
                text("UPDATE accounts SET is_active = 0 WHERE id = :id"), {"id": 0}
            )

    def test_allows_reads(self, app, db, session):
        """
        Read operations should work normally within RO UoW.
        """
        with RWuow() as uow:
            uow.accounts.add(AccountFactory.build())

        with ROuow() as uow:
            count = uow.session.query(Account).count()
            assert count >= 1

    def test_disallows_commit(self, app, db, session):
        """
        RO UoW must reject commit().
        """
        with ROuow() as uow, pytest.raises(RuntimeError, match="does not allow commit"):
            uow.commit()

    def test_guards_are_removed_on_exit(self, app, db, session):
        with ROuow() as uow:
            assert uow._guards is not None
        assert uow._guards is None

        # Writes work again once the read-only block is over.
        with RWuow() as rw:
            rw.accounts.add(AccountFactory.build())
