from .redis_session_token_store import RedisSessionTokenStore

__all__ = ["RedisSessionTokenStore"]
