from authcore.models.account import Account, AccountRole
from authcore.models.session_token import SessionToken

__all__ = ["Account", "AccountRole", "SessionToken"]
