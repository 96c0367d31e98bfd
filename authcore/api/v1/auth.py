"""Authentication endpoints using the service layer."""

from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import get_jwt_identity

from authcore.api.deps import build_auth_service, client_ip, json_response, require_auth, timing
from authcore.schemas import (
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
from authcore.services._shared.errors import AuthError, AuthErrorCode
from authcore.services.auth.dto import LoginIn, RegisterIn, ResetPasswordIn

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
token_schema = TokenSchema()
email_schema = EmailSchema()
refresh_schema = RefreshSchema()
reset_schema = ResetPasswordSchema()
account_schema = AccountSchema()
pair_schema = TokenPairSchema()
login_response_schema = LoginResponseSchema()
reset_status_schema = ResetTokenStatusSchema()

FORGOT_PASSWORD_MESSAGE = "If the address is registered, a reset link has been sent."


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@bp.post("/register")
@timing
def register():
    """Register a new, unverified account and send its verification email."""
    data = register_schema.load(_payload())
    account = build_auth_service().register(RegisterIn(**data))
    return json_response({"data": account_schema.dump(account)}, status=201)


@bp.post("/verify-email")
@timing
def verify_email():
    data = token_schema.load(_payload())
    account = build_auth_service().verify_email(data["token"])
    return json_response({"data": account_schema.dump(account)})


@bp.post("/resend-verification")
@timing
def resend_verification():
    data = email_schema.load(_payload())
    build_auth_service().resend_verification(data["email"])
    return json_response({"data": {"message": "Verification email sent."}})


@bp.post("/login")
@timing
def login():
    """Authenticate credentials and issue an access/refresh token pair."""
    data = login_schema.load(_payload())
    result = build_auth_service().login(LoginIn(**data, client_ip=client_ip()))
    return json_response({"data": login_response_schema.dump(result)})


@bp.post("/refresh")
@timing
def refresh():
    """Rotate a refresh token; the presented token stops working."""
    data = refresh_schema.load(_payload())
    pair = build_auth_service().refresh_token(data["refresh_token"])
    return json_response({"data": pair_schema.dump(pair)})


@bp.post("/logout")
@timing
def logout():
    data = refresh_schema.load(_payload())
    build_auth_service().logout(data["refresh_token"])
    return json_response({"data": {"message": "Logged out."}})


@bp.post("/forgot-password")
@timing
def forgot_password():
    """Start password recovery.

    Unknown addresses get the same response as known ones so the endpoint
    cannot be used to enumerate accounts.
    """
    data = email_schema.load(_payload())
    try:
        build_auth_service().forgot_password(data["email"])
    except AuthError as exc:
        if exc.code is not AuthErrorCode.AUTH_USER_NOT_FOUND:
            raise
    return json_response({"data": {"message": FORGOT_PASSWORD_MESSAGE}})


@bp.get("/reset-password/validate")
@timing
def validate_reset_token():
    data = token_schema.load({"token": request.args.get("token", "")})
    status = build_auth_service().validate_reset_token(data["token"])
    return json_response({"data": reset_status_schema.dump(status)})


@bp.post("/reset-password")
@timing
def reset_password():
    data = reset_schema.load(_payload())
    build_auth_service().reset_password(ResetPasswordIn(**data))
    return json_response({"data": {"message": "Password has been reset."}})


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the account behind the presented access token."""
    account = build_auth_service().get_me(get_jwt_identity())
    return json_response({"data": account_schema.dump(account)})
