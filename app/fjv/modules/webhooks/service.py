"""
MercadoPago notification handling: signature check, idempotent recording and
payment reconciliation against Cobros/Pagos.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError

from app.fjv.audit import record_event
from app.fjv.modules.cobros.models import Cobro, Pago
from app.fjv.modules.cobros.service import (
    COBRO_ANULADO,
    METODO_MERCADOPAGO,
    PAGO_ANULADO,
    PAGO_PAGADO,
    PAGO_PENDIENTE,
    PAGO_RECHAZADO,
    marcar_cobro_pagado,
)
from app.fjv.modules.webhooks.models import MercadoPagoNotification

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fjv.modules.webhooks.mercadopago import MercadoPagoClient

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "approved": PAGO_PAGADO,
    "pending": PAGO_PENDIENTE,
    "in_process": PAGO_PENDIENTE,
    "authorized": PAGO_PENDIENTE,
    "rejected": PAGO_RECHAZADO,
    "cancelled": PAGO_ANULADO,
    "refunded": PAGO_ANULADO,
    "charged_back": PAGO_ANULADO,
}

# Provider fields kept on Pago.datos_extra.
_PAYMENT_FIELDS = (
    "id",
    "status",
    "status_detail",
    "payment_method_id",
    "payment_type_id",
    "transaction_amount",
    "date_approved",
    "date_created",
    "external_reference",
    "preference_id",
)


class ReconciliationError(ValueError):
    pass


@dataclass(frozen=True)
class Notification:
    resource_id: str
    topic: str
    resource: str | None = None
    action: str | None = None
    user_id: int | None = None
    application_id: int | None = None
    api_version: str | None = None
    sent_at: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict)


def map_status(provider_status: str | None) -> str:
    return STATUS_MAP.get((provider_status or "").strip().lower(), PAGO_PENDIENTE)


def parse_external_reference(reference: str | None) -> int | None:
    """`cobro_{id}_{suffix}` -> id. Anything else -> None."""
    parts = (reference or "").split("_")
    if len(parts) < 3 or parts[0] != "cobro":
        return None
    try:
        return int(parts[1])
    except ValueError:
        return None


def _parse_timestamp(value) -> datetime | None:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _to_int(value) -> int | None:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def parse_notification(body: Mapping | None, args: Mapping) -> Notification | None:
    """
    Accept both delivery formats:
    - JSON body `{type|topic, data: {id}, action, user_id, ...}`
    - query string `?id=&topic=` or `?data.id=&type=`
    Returns None when no resource id or topic can be found.
    """
    body = body if isinstance(body, Mapping) else {}
    data = body.get("data") if isinstance(body.get("data"), Mapping) else {}

    resource_id = data.get("id") or args.get("data.id") or args.get("id")
    if not resource_id and body.get("resource"):
        # Legacy IPN: resource is a URL ending with the id.
        resource_id = str(body["resource"]).rstrip("/").rsplit("/", 1)[-1]
    topic = body.get("type") or body.get("topic") or args.get("type") or args.get("topic")
    if not resource_id or not topic:
        return None

    raw = dict(body)
    if args:
        raw["_query"] = dict(args)
    return Notification(
        resource_id=str(resource_id),
        topic=str(topic),
        resource=str(body.get("resource") or resource_id),
        action=body.get("action"),
        user_id=_to_int(body.get("user_id")),
        application_id=_to_int(body.get("application_id")),
        api_version=body.get("api_version"),
        sent_at=_parse_timestamp(body.get("date_created")),
        raw=raw,
    )


def verify_signature(
    secret: str | None,
    x_signature: str | None,
    data_id: str,
    topic: str,
    resource: str | None = None,
) -> bool:
    """
    `x-signature: ts=<ts>,v1=<hex>` is HMAC-SHA256 of
    `{data_id};{ts};{topic};{resource}` keyed with the webhook secret.
    `resource` defaults to the resource id when the delivery carries none.
    """
    if not secret:
        logger.warning("MercadoPago webhook signature verification skipped: no secret configured")
        return True
    if not x_signature:
        logger.warning("MercadoPago webhook missing signature header")
        return False

    parts = {}
    for part in x_signature.split(","):
        if "=" in part:
            key, value = part.split("=", 1)
            parts[key.strip()] = value.strip()
    ts = parts.get("ts")
    v1 = parts.get("v1")
    if not ts or not v1:
        logger.warning("MercadoPago webhook signature malformed: %s", x_signature)
        return False

    manifest = f"{data_id};{ts};{topic};{resource or data_id}"
    expected = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, v1):
        logger.warning("MercadoPago webhook signature mismatch for resource %s", data_id)
        return False
    return True


def _find_notification(s: "Session", notice: Notification) -> MercadoPagoNotification | None:
    return (
        s.query(MercadoPagoNotification)
        .filter(
            MercadoPagoNotification.resource_id == notice.resource_id,
            MercadoPagoNotification.topic == notice.topic,
        )
        .one_or_none()
    )


def record_notification(s: "Session", notice: Notification) -> tuple[MercadoPagoNotification, bool]:
    """
    Insert and commit the notification row before any business processing.
    Returns (row, should_process). Duplicates are not processed again unless the
    earlier attempt ended in `error`.
    """
    row = _find_notification(s, notice)
    if row is None:
        row = MercadoPagoNotification(
            resource_id=notice.resource_id,
            topic=notice.topic,
            user_id=notice.user_id,
            application_id=notice.application_id,
            api_version=notice.api_version,
            sent_at=notice.sent_at,
            processing_status="pending",
            raw_payload=notice.raw,
        )
        s.add(row)
        try:
            s.commit()
            return row, True
        except IntegrityError:
            # Concurrent delivery of the same notification won the insert.
            s.rollback()
            row = _find_notification(s, notice)
            if row is None:
                raise

    if row.processing_status == "error":
        logger.info("Retrying MercadoPago notification %s/%s after error", row.topic, row.resource_id)
        row.processing_status = "pending"
        row.processing_error = None
        s.commit()
        return row, True
    logger.info("Duplicate MercadoPago notification %s/%s ignored", row.topic, row.resource_id)
    return row, False


def _payment_summary(payment: dict) -> dict:
    return {k: payment.get(k) for k in _PAYMENT_FIELDS if k in payment}


def _locate_pago(s: "Session", payment_id: str, payment: dict) -> Pago | None:
    pago = s.query(Pago).filter(Pago.payment_id == payment_id).one_or_none()
    if pago is not None:
        return pago
    preference_id = payment.get("preference_id")
    if preference_id:
        pago = (
            s.query(Pago)
            .filter(Pago.preference_id == str(preference_id), Pago.payment_id.is_(None))
            .order_by(Pago.id.desc())
            .first()
        )
    return pago


def reconcile_payment(s: "Session", payment: dict) -> Pago:
    """
    Apply a provider payment to the local Pago/Cobro. Runs in the caller's transaction.

    The Pago is located by payment id, then by preference id, then created for the
    Cobro named in external_reference. A Pagado result also marks the Cobro Pagado.
    """
    payment_id = str(payment.get("id") or "").strip()
    if not payment_id:
        raise ReconciliationError("Payment without id")
    estado = map_status(payment.get("status"))

    pago = _locate_pago(s, payment_id, payment)
    if pago is None:
        cobro_id = parse_external_reference(payment.get("external_reference"))
        if cobro_id is None:
            raise ReconciliationError(f"Invalid external reference: {payment.get('external_reference')!r}")
        cobro = s.get(Cobro, cobro_id)
        if cobro is None:
            raise ReconciliationError(f"Cobro {cobro_id} not found")
        amount = payment.get("transaction_amount")
        pago = Pago(
            cobro=cobro,
            monto=Decimal(str(amount)) if amount is not None else cobro.monto,
            estado=PAGO_PENDIENTE,
            preference_id=str(payment["preference_id"]) if payment.get("preference_id") else None,
            metodo_pago=METODO_MERCADOPAGO,
        )
        s.add(pago)

    old = pago.estado
    pago.payment_id = payment_id
    pago.metodo_pago = pago.metodo_pago or METODO_MERCADOPAGO
    pago.datos_extra = {**(pago.datos_extra or {}), "payment": _payment_summary(payment)}

    if old == PAGO_PAGADO and estado != PAGO_PAGADO:
        logger.warning(
            "Payment %s reported as %s after being Pagado; keeping Pagado", payment_id, payment.get("status")
        )
    elif estado != old:
        pago.estado = estado

    if pago.estado == PAGO_PAGADO:
        pago.fecha_pago = pago.fecha_pago or _parse_timestamp(payment.get("date_approved")) or datetime.utcnow()
        cobro = pago.cobro
        if cobro.estado == COBRO_ANULADO:
            logger.warning("Approved payment %s received for annulled cobro %s", payment_id, cobro.id)
        marcar_cobro_pagado(
            cobro,
            comprobante=f"MP-{payment_id}",
            observaciones=f"Pagado mediante MercadoPago. ID de pago: {payment_id}",
        )
    s.flush()

    record_event(
        s,
        actor=None,
        action="webhook.payment",
        entity_type="Pago",
        entity_id=str(pago.id),
        metadata={
            "cobro_id": pago.cobro_id,
            "payment_id": payment_id,
            "provider_status": payment.get("status"),
            "from": old,
            "to": pago.estado,
        },
    )
    return pago


def process_notification(s: "Session", row: MercadoPagoNotification, client: "MercadoPagoClient") -> None:
    """
    Dispatch a recorded notification by topic. Failures roll back the business
    changes and are stored on the row; they never propagate.
    """
    row_id = row.id
    try:
        if row.topic == "payment":
            payment = client.get_payment(row.resource_id)
            reconcile_payment(s, payment)
            row.transaction_id = str(payment.get("id") or row.resource_id)
            row.payment_status = payment.get("status")
        else:
            logger.info("MercadoPago notification topic %s ignored", row.topic)
        row.processing_status = "processed"
        s.commit()
    except Exception as e:
        s.rollback()
        logger.exception("MercadoPago notification %s/%s failed", row.topic, row.resource_id)
        failed = s.get(MercadoPagoNotification, row_id)
        if failed is not None:
            failed.processing_status = "error"
            failed.processing_error = str(e)[:2000]
            s.commit()
