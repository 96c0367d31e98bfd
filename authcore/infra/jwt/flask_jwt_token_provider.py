# authcore/infra/jwt/flask_jwt_token_provider.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, cast

from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from authcore.services._shared.errors import TokenVerificationError


@dataclass(slots=True)
class JWTTokenProvider:
    """
    Token provider adapter for Flask-JWT-Extended (HS256, ``JWT_SECRET_KEY``).

    The library stamps every token with a random ``jti``, so two tokens issued
    for the same identity in the same second still differ; the session store
    relies on that for its unique ``token`` key.

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        from flask_jwt_extended import create_access_token as _create_access

        return cast(
            str,
            _create_access(
                identity=identity,
                additional_claims=additional_claims or {},
                expires_delta=expires_delta,
            ),
        )

    def create_refresh_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        from flask_jwt_extended import create_refresh_token as _create_refresh

        return cast(
            str,
            _create_refresh(
                identity=identity,
                additional_claims=additional_claims or {},
                expires_delta=expires_delta,
            ),
        )

    def decode(self, token: str) -> dict[str, Any]:
        """Verify signature and expiry.

        :raises TokenVerificationError: For any malformed, forged or expired token.
        """
        from flask_jwt_extended import decode_token

        try:
            return cast(dict[str, Any], decode_token(token))
        except (PyJWTError, JWTExtendedException) as exc:
            raise TokenVerificationError(str(exc)) from exc

    def get_subject(self, token: str) -> str:
        return str(self.decode(token)["sub"])

    def get_token_type(self, token: str) -> str:
        # Flask-JWT-Extended sets "type": "access" | "refresh"
        return str(self.decode(token).get("type", ""))
