from .session_token_store import SQLAlchemySessionTokenStore

__all__ = ["SQLAlchemySessionTokenStore"]
