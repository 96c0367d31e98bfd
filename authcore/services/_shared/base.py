"""Service base class: unit-of-work factories and HTTP error translation."""

from __future__ import annotations

from authcore.core import errors as api_errors
from authcore.services._shared.errors import (
    AuthError,
    AuthErrorCode,
    InvalidInputError,
    ServiceError,
)
from authcore.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)

# HTTP status per auth failure code.
AUTH_ERROR_STATUS: dict[AuthErrorCode, int] = {
    AuthErrorCode.AUTH_INVALID_CREDENTIALS: 401,
    AuthErrorCode.AUTH_FORBIDDEN: 403,
    AuthErrorCode.EMAIL_NOT_VERIFIED: 403,
    AuthErrorCode.AUTH_TOKEN_INVALID: 400,
    AuthErrorCode.AUTH_TOKEN_EXPIRED: 400,
    AuthErrorCode.AUTH_USER_ALREADY_VERIFIED: 409,
    AuthErrorCode.AUTH_USER_NOT_FOUND: 404,
    AuthErrorCode.AUTH_EMAIL_ALREADY_EXISTS: 409,
    AuthErrorCode.AUTH_USER_ALREADY_EXISTS: 409,
    AuthErrorCode.INVALID_REFRESH_TOKEN: 401,
    AuthErrorCode.AUTH_RESET_TOKEN_MALFORMED: 400,
    AuthErrorCode.INVALID_RESET_TOKEN: 400,
    AuthErrorCode.AUTH_TOKEN_ALREADY_USED: 400,
    AuthErrorCode.DATABASE_ERROR: 500,
    AuthErrorCode.SERVICE_UNAVAILABLE: 503,
}


class BaseService:
    """
    Base class for application services.

    Services reach the database only through the units of work returned by
    :meth:`rw_uow` and :meth:`ro_uow`, never through ``db.session`` directly.
    """

    READ_ISOLATION = "READ COMMITTED"

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """Unit of work that commits on success and rolls back on error."""
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Unit of work that rejects writes and always rolls back.

        ORM instances are expired on exit; build DTOs inside the block.
        """
        return SQLAlchemyReadOnlyUnitOfWork(isolation_level=self.READ_ISOLATION)

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map a service-layer error to an :class:`~authcore.core.errors.APIError`.

        :param exc: Exception raised within the service.
        :returns: The API error, or ``exc`` itself when it is not a service error.
        """
        if isinstance(exc, AuthError):
            # The code is the public contract; keep it verbatim in the body.
            return api_errors.APIError(
                message=str(exc),
                status_code=AUTH_ERROR_STATUS.get(exc.code, 400),
                code=exc.code.value,
                details=exc.details or None,
            )
        if isinstance(exc, InvalidInputError):
            return api_errors.APIError(
                message="Validation failed",
                status_code=422,
                code="validation_error",
                details={"errors": {exc.field: [exc.message]}},
            )
        if isinstance(exc, ServiceError):
            return api_errors.APIError(message=str(exc), status_code=400, code="bad_request")
        return exc
