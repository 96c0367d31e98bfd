"""Factory Boy base wired to the application's ``db.session``.

The ``session`` fixture swaps ``db.session`` for a savepoint-bound scoped
session, so factories always write into the running test transaction.
"""

from __future__ import annotations

import factory

from authcore.core.extensions import db


def current_session():
    return db.session


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Flush-only persistence; tests commit when a service call must see rows."""

    class Meta:
        abstract = True
        sqlalchemy_session_factory = current_session
        sqlalchemy_session_persistence = "flush"
