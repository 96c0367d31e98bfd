"""Abstract Unit of Work contract for the auth persistence layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authcore.repositories import AccountRepository, SessionTokenRepository


class UnitOfWork(ABC):
    """
    Transactional boundary around one auth use-case.

    Both repositories share one transaction. Leaving the ``with`` block
    normally commits; leaving it with an exception rolls back and re-raises.

    :ivar accounts: Account repository bound to the transaction.
    :ivar session_tokens: Session record repository bound to the transaction.
    """

    accounts: AccountRepository
    session_tokens: SessionTokenRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
