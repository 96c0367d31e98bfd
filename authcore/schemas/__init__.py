"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    AccountSchema,
    EmailSchema,
    LoginResponseSchema,
    LoginSchema,
    RefreshSchema,
    RegisterSchema,
    ResetPasswordSchema,
    ResetTokenStatusSchema,
    TokenPairSchema,
    TokenSchema,
)

__all__ = [
    "AccountSchema",
    "EmailSchema",
    "LoginResponseSchema",
    "LoginSchema",
    "RefreshSchema",
    "RegisterSchema",
    "ResetPasswordSchema",
    "ResetTokenStatusSchema",
    "TokenPairSchema",
    "TokenSchema",
]
