from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from authcore.services._shared.errors import TokenVerificationError


class TokenProvider(Protocol):
    """Port for issuing and decoding signed bearer tokens.

    ``decode`` and the ``get_*`` helpers raise
    :class:`~authcore.services._shared.errors.TokenVerificationError` for a bad
    signature, an expired token or anything that is not a token at all.
    """

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
    ) -> str: ...

    def create_refresh_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
    ) -> str: ...

    def decode(self, token: str) -> dict[str, Any]: ...

    def get_subject(self, token: str) -> str: ...

    def get_token_type(self, token: str) -> str: ...


class StubTokenProvider:
    """Deterministic token provider used in unit tests.

    Tokens look like ``"<type>.<identity>.<seq>"`` and are only decodable by
    the instance that issued them. Expiry is checked against ``clock``.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._seq = 0
        self._issued: dict[str, dict[str, Any]] = {}

    def _mk(
        self,
        *,
        identity: str,
        ttype: str,
        exp_delta: timedelta,
        additional_claims: dict[str, Any] | None = None,
    ) -> str:
        self._seq += 1
        token = f"{ttype}.{identity}.{self._seq}"
        payload: dict[str, Any] = {
            "sub": identity,
            "type": ttype,
            "jti": f"jti-{self._seq}",
            "exp": int((self._clock() + exp_delta).timestamp()),
        }
        if additional_claims:
            payload.update(additional_claims)
        self._issued[token] = payload
        return token

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        return self._mk(
            identity=identity,
            ttype="access",
            exp_delta=expires_delta or timedelta(minutes=15),
            additional_claims=additional_claims,
        )

    def create_refresh_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        return self._mk(
            identity=identity,
            ttype="refresh",
            exp_delta=expires_delta or timedelta(days=7),
            additional_claims=additional_claims,
        )

    def decode(self, token: str) -> dict[str, Any]:
        payload = self._issued.get(token)
        if payload is None:
            raise TokenVerificationError("Unknown token")
        if payload["exp"] < int(self._clock().timestamp()):
            raise TokenVerificationError("Token has expired")
        return dict(payload)

    def get_subject(self, token: str) -> str:
        return str(self.decode(token)["sub"])

    def get_token_type(self, token: str) -> str:
        return str(self.decode(token)["type"])
