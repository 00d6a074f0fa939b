from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from app.fjv.db import db_session
from app.fjv.errors import json_error
from app.fjv.modules.webhooks.service import (
    parse_notification,
    process_notification,
    record_notification,
    verify_signature,
)

logger = logging.getLogger(__name__)

bp = Blueprint("webhooks", __name__)


@bp.route("/mercadopago", methods=["POST", "GET"])
def mercadopago_webhook():
    """
    Unauthenticated gateway callback. Answers 200 for everything except a failed
    signature, so the gateway does not keep redelivering notifications we already hold.
    """
    notice = parse_notification(request.get_json(silent=True), request.args)
    if notice is None:
        logger.info("MercadoPago notification with unrecognized format")
        return jsonify({"status": "1", "msg": "Formato de notificación no reconocido"})

    ok = verify_signature(
        current_app.config.get("MP_WEBHOOK_SECRET"),
        request.headers.get("x-signature"),
        notice.resource_id,
        notice.topic,
        notice.resource,
    )
    if not ok:
        return json_error("Firma inválida", 401)

    s = db_session()
    row, should_process = record_notification(s, notice)
    if not should_process:
        return jsonify({"status": "1", "msg": "Notificación ya procesada"})

    process_notification(s, row, current_app.extensions["mercadopago"])
    if row.processing_status == "error":
        return jsonify({"status": "1", "msg": "Notificación recibida pero hubo errores"})
    return jsonify({"status": "1", "msg": "Notificación procesada exitosamente"})
