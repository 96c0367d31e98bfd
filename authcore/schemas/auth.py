"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from typing import Any

from marshmallow import Schema, fields, pre_load, validate

from authcore.models.account import EMAIL_MAX_LENGTH, USERNAME_MAX_LENGTH


class BaseSchema(Schema):
    """Base schema enabling ordered output for consistent API responses."""

    class Meta:
        ordered = True


# ------------------------------ Requests ---------------------------------- #


class RegisterSchema(BaseSchema):
    """Input payload for account registration.

    Email and username are trimmed before validation, so a username made of
    spaces fails the length check.
    """

    email = fields.Email(
        required=True,
        validate=[
            validate.Length(max=EMAIL_MAX_LENGTH),
            validate.Regexp(r"[^@\s]+@[^@\s]+\.[^@\s]+$", error="Email domain must contain a dot."),
        ],
    )
    username = fields.String(required=True, validate=validate.Length(min=3, max=USERNAME_MAX_LENGTH))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))

    @pre_load
    def _strip_identity(self, data: Any, **kwargs: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {k: v.strip() if k in ("email", "username") and isinstance(v, str) else v for k, v in data.items()}


class LoginSchema(BaseSchema):
    """Input payload for authenticating an account."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class TokenSchema(BaseSchema):
    """Payload carrying a single opaque token (verification or reset)."""

    token = fields.String(required=True, validate=validate.Length(min=1, max=128))


class EmailSchema(BaseSchema):
    email = fields.Email(required=True, validate=validate.Length(max=254))


class RefreshSchema(BaseSchema):
    """Payload carrying a refresh token for rotation or logout."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1))


class ResetPasswordSchema(BaseSchema):
    token = fields.String(required=True, validate=validate.Length(min=1, max=128))
    new_password = fields.String(required=True, validate=validate.Length(min=8, max=128))


# ------------------------------ Responses --------------------------------- #


class AccountSchema(BaseSchema):
    """Serialize :class:`~authcore.services.auth.dto.AccountOut` values."""

    id = fields.Int(dump_only=True)
    email = fields.Email(dump_only=True)
    username = fields.String(dump_only=True)
    role = fields.String(dump_only=True)
    is_verified = fields.Boolean(dump_only=True)
    is_active = fields.Boolean(dump_only=True)
    last_login_at = fields.DateTime(dump_only=True, allow_none=True)
    created_at = fields.DateTime(dump_only=True, allow_none=True)


class TokenPairSchema(BaseSchema):
    """Access/refresh token pair."""

    access_token = fields.String(dump_only=True)
    refresh_token = fields.String(dump_only=True)
    token_type = fields.Constant("bearer", dump_only=True)


class LoginResponseSchema(TokenPairSchema):
    account = fields.Nested(AccountSchema, dump_only=True)


class ResetTokenStatusSchema(BaseSchema):
    is_valid = fields.Boolean(dump_only=True)
    is_expired = fields.Boolean(dump_only=True)
    user_exists = fields.Boolean(dump_only=True)
