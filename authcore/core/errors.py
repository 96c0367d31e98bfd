"""Centralized JSON (RFC 7807) error handling for the API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from authcore.core.logger import ensure_request_id

log = logging.getLogger(__name__)


def _http_status_to_code(status_code: int) -> str:
    """Snake-case phrase of a status, e.g. ``404`` -> ``"not_found"``."""
    try:
        return HTTPStatus(status_code).name.lower()
    except ValueError:
        return "error"


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary.
    :rtype: dict
    """
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
    }
    if details:
        problem["details"] = details
    problem["request_id"] = ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any]) -> Response:
    """Return a Flask response with ``application/problem+json`` media type."""
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    return resp


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier. Auth lifecycle errors reuse their
        ``AuthErrorCode`` value (e.g. ``"INVALID_REFRESH_TOKEN"``). Defaults to
        ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Optional structured payload included in the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        """Serialize error metadata into an RFC 7807 problem."""
        return _as_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )



def _bearer_problem(code: str, message: str):
    problem = _as_problem(status=HTTPStatus.UNAUTHORIZED, code=code, message=message)
    log.warning("JWT rejected: code=%s request_id=%s", code, problem.get("request_id"))
    return _problem_response(problem), HTTPStatus.UNAUTHORIZED


def _init_jwt_handlers() -> None:
    """Render flask-jwt-extended rejections as 401 problems instead of ``{"msg"}``."""
    from authcore.core.extensions import jwt

    @jwt.unauthorized_loader
    def _missing(reason: str):
        return _bearer_problem("unauthorized", reason)

    @jwt.invalid_token_loader
    def _invalid(reason: str):
        return _bearer_problem("invalid_token", reason)

    @jwt.expired_token_loader
    def _expired(jwt_header, jwt_payload):
        return _bearer_problem("token_expired", "Token has expired")


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - Service-layer errors are translated through
      :meth:`authcore.services._shared.base.BaseService.translate_exceptions`.
    - Bearer-token rejections from flask-jwt-extended become 401 problems.
    - Emits 5xx with ``exc_info``; 4xx as warnings.
    """
    from authcore.services._shared.base import BaseService
    from authcore.services._shared.errors import ServiceError

    translator = BaseService()
    _init_jwt_handlers()

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        problem = err.to_problem()
        level = log.error if err.status_code >= 500 else log.warning
        level(
            "APIError: code=%s status=%s msg=%s request_id=%s",
            err.code,
            err.status_code,
            err.message,
            problem.get("request_id"),
        )
        return _problem_response(problem), err.status_code

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        translated = translator.translate_exceptions(err)
        if isinstance(translated, APIError):
            return handle_api_error(translated)
        return handle_unexpected_error(err)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        problem = _as_problem(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        level(
            "HTTPException: code=%s status=%s detail=%s request_id=%s",
            error_code,
            status,
            message,
            problem.get("request_id"),
        )
        return _problem_response(problem), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        problem = _as_problem(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": err.messages},
        )
        log.warning("ValidationError: request_id=%s", problem.get("request_id"))
        return _problem_response(problem), HTTPStatus.UNPROCESSABLE_ENTITY

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        # Do not leak raw DB error to clients
        problem = _as_problem(
            status=HTTPStatus.CONFLICT,
            code="conflict",
            message="Resource conflict",
        )
        log.error("IntegrityError: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem), HTTPStatus.CONFLICT

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        problem = _as_problem(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
        )
        log.error("OperationalError: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem), HTTPStatus.SERVICE_UNAVAILABLE

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        log.error(
            "Unhandled exception: request_id=%s",
            problem.get("request_id"),
            exc_info=err,
        )
        return _problem_response(problem), HTTPStatus.INTERNAL_SERVER_ERROR
