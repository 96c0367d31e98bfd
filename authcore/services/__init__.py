"""Service layer public API.

This package exposes the essential building blocks for the service layer so that
callers can import from :mod:`authcore.services` without knowing internal structure.

Re-exports
----------
- Base primitives (from ``authcore.services._shared.base``)
    * :class:`BaseService`

- Errors (from ``authcore.services._shared.errors``)
    * :class:`AuthError`, :class:`AuthErrorCode`

- Auth lifecycle service (from ``authcore.services.auth``)
    * :class:`AuthService`
    * DTOs: :class:`RegisterIn`, :class:`LoginIn`, :class:`ResetPasswordIn`,
      :class:`AccountOut`, :class:`TokenPairOut`, :class:`LoginOut`,
      :class:`ResetTokenStatus`, :class:`AuthTokenConfig`
"""

from __future__ import annotations

from ._shared.base import BaseService
from ._shared.errors import AuthError, AuthErrorCode
from .auth.dto import (
    AccountOut,
    AuthTokenConfig,
    LoginIn,
    LoginOut,
    RegisterIn,
    ResetPasswordIn,
    ResetTokenStatus,
    TokenPairOut,
)

# Auth service + DTOs
from .auth.service import AuthService

__all__ = [
    # Base
    "BaseService",
    # Errors
    "AuthError",
    "AuthErrorCode",
    # Auth
    "AuthService",
    "RegisterIn",
    "LoginIn",
    "ResetPasswordIn",
    "AccountOut",
    "TokenPairOut",
    "LoginOut",
    "ResetTokenStatus",
    "AuthTokenConfig",
]
