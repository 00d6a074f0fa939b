"""
Error taxonomy shared by services and blueprints.

Services raise these; the handlers registered in create_app() turn them into
the `{"status": "0", "msg": ...}` JSON envelope.
"""
from __future__ import annotations

import logging

from flask import Flask, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 400

    def __init__(self, msg: str, *, extra: dict | None = None):
        super().__init__(msg)
        self.msg = msg
        self.extra = extra or {}


class ValidationError(ApiError):
    status_code = 400


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class ForbiddenError(ApiError):
    status_code = 403


class UpstreamError(ApiError):
    """An external service (payment gateway, image host) failed or is not configured."""

    status_code = 502


class NotConfiguredError(ApiError):
    status_code = 503


def raise_if_errors(errors: list[str]) -> None:
    if errors:
        raise ValidationError(" ".join(errors), extra={"errores": errors})


def json_error(msg: str, status_code: int, **extra):
    body = {"status": "0", "msg": msg}
    body.update(extra)
    return jsonify(body), status_code


def _is_foreign_key_violation(e: IntegrityError) -> bool:
    text = str(getattr(e, "orig", e)).lower()
    return "foreign key" in text


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):  # type: ignore[no-redef]
        return json_error(e.msg, e.status_code, **e.extra)

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):  # type: ignore[no-redef]
        if _is_foreign_key_violation(e):
            app.logger.warning("FK violation (request_id=%s): %s", getattr(g, "request_id", None), e.orig)
            return json_error("El registro está referenciado por otros datos y no puede modificarse.", 400)
        app.logger.warning("Unique violation (request_id=%s): %s", getattr(g, "request_id", None), e.orig)
        return json_error("Ya existe un registro con esos datos.", 409)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        messages = {
            400: "Solicitud inválida.",
            401: "No autenticado.",
            403: "No tiene permisos para realizar esta acción.",
            404: "Recurso no encontrado.",
            405: "Método no permitido.",
            413: "El archivo es demasiado grande.",
        }
        code = e.code or 500
        if code == 403:
            missing = getattr(g, "missing_role", None)
            if missing:
                app.logger.warning("Forbidden: missing_role=%s request_id=%s", missing, getattr(g, "request_id", None))
        return json_error(messages.get(code, e.name), code)

    @app.errorhandler(Exception)
    def _err_500(e: Exception):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        env = (app.config.get("ENV") or "").strip().lower()
        if env in ("prod", "production"):
            return json_error("Error interno del servidor.", 500, requestId=rid)
        return json_error("Error interno del servidor.", 500, requestId=rid, detail=str(e))
