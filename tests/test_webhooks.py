import hashlib
import hmac

from app.fjv.db import session_scope
from app.fjv.modules.cobros.models import Pago
from app.fjv.modules.webhooks.models import MercadoPagoNotification
from app.fjv.modules.webhooks.service import (
    map_status,
    parse_external_reference,
    reconcile_payment,
    verify_signature,
)

WEBHOOK_URL = "/api/webhook/mercadopago"


def _notify(client, payment_id: str, headers=None):
    return client.post(WEBHOOK_URL, json={"type": "payment", "data": {"id": payment_id}}, headers=headers or {})


def _signed_headers(secret: str, payment_id: str, topic: str = "payment", ts: str = "1704900000") -> dict:
    manifest = f"{payment_id};{ts};{topic};{payment_id}"
    v1 = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return {"x-signature": f"ts={ts},v1={v1}"}


def _checkout(client, headers, cobro) -> dict:
    r = client.post(f"/api/cobros/{cobro['idCobro']}/mercadopago", headers=headers)
    assert r.status_code == 201, r.json
    return r.json


def test_parse_external_reference():
    assert parse_external_reference("cobro_12_1704900000") == 12
    assert parse_external_reference("cobro_x_1") is None
    assert parse_external_reference("pedido_12_1") is None
    assert parse_external_reference(None) is None


def test_map_status():
    assert map_status("approved") == "Pagado"
    assert map_status("in_process") == "Pendiente"
    assert map_status("rejected") == "Rechazado"
    assert map_status("refunded") == "Anulado"
    assert map_status("something_new") == "Pendiente"


def test_verify_signature():
    sig = _signed_headers("s3cret", "123")["x-signature"]
    assert verify_signature("s3cret", sig, "123", "payment")
    assert verify_signature("s3cret", sig, "123", "payment", "123")
    assert not verify_signature("s3cret", sig, "124", "payment")
    assert not verify_signature("s3cret", sig, "123", "merchant_order")
    assert not verify_signature("s3cret", sig, "123", "payment", "https://api.mercadopago.com/v1/payments/123")
    assert not verify_signature("otro", sig, "123", "payment")
    assert not verify_signature("s3cret", None, "123", "payment")
    assert not verify_signature("s3cret", "v1=abc", "123", "payment")
    assert verify_signature("", None, "123", "payment")


def test_approved_payment_marks_cobro_paid(app, client, admin_headers, user_headers, cobro):
    checkout = _checkout(client, user_headers, cobro)
    app.extensions["mercadopago"].payments["9001"] = {
        "id": 9001,
        "status": "approved",
        "preference_id": checkout["preferenceId"],
        "external_reference": checkout["externalReference"],
        "transaction_amount": 15000.5,
        "date_approved": "2025-01-10T12:00:00.000-03:00",
    }

    r = _notify(client, "9001")
    assert r.status_code == 200
    assert r.json["msg"] == "Notificación procesada exitosamente"

    detalle = client.get(f"/api/cobros/{cobro['idCobro']}", headers=admin_headers).json
    assert detalle["estado"] == "Pagado"
    assert detalle["comprobantePago"] == "MP-9001"

    pagos = client.get(f"/api/cobros/{cobro['idCobro']}/pagos", headers=admin_headers).json
    assert len(pagos) == 1
    assert pagos[0]["paymentId"] == "9001"
    assert pagos[0]["estado"] == "Pagado"
    assert pagos[0]["fechaPago"].startswith("2025-01-10T15:00:00")

    with session_scope(app) as s:
        row = s.query(MercadoPagoNotification).one()
        assert row.processing_status == "processed"
        assert row.payment_status == "approved"


def test_duplicate_delivery_is_processed_once(app, client, admin_headers, user_headers, cobro):
    checkout = _checkout(client, user_headers, cobro)
    app.extensions["mercadopago"].payments["9002"] = {
        "id": 9002,
        "status": "approved",
        "preference_id": checkout["preferenceId"],
    }

    assert _notify(client, "9002").json["msg"] == "Notificación procesada exitosamente"
    assert _notify(client, "9002").json["msg"] == "Notificación ya procesada"

    with session_scope(app) as s:
        assert s.query(MercadoPagoNotification).count() == 1
        assert s.query(Pago).filter(Pago.estado == "Pagado").count() == 1


def test_payment_without_pago_uses_external_reference(app, client, admin_headers, cobro):
    app.extensions["mercadopago"].payments["9100"] = {
        "id": 9100,
        "status": "approved",
        "external_reference": f"cobro_{cobro['idCobro']}_1704900000",
        "transaction_amount": 15000.5,
    }
    assert _notify(client, "9100").json["msg"] == "Notificación procesada exitosamente"

    pagos = client.get(f"/api/cobros/{cobro['idCobro']}/pagos", headers=admin_headers).json
    assert [(p["paymentId"], p["metodoPago"], p["monto"]) for p in pagos] == [("9100", "MercadoPago", "15000.50")]
    assert client.get(f"/api/cobros/{cobro['idCobro']}", headers=admin_headers).json["estado"] == "Pagado"


def test_pending_payment_leaves_cobro_pending(app, client, admin_headers, user_headers, cobro):
    checkout = _checkout(client, user_headers, cobro)
    app.extensions["mercadopago"].payments["9200"] = {
        "id": 9200,
        "status": "in_process",
        "preference_id": checkout["preferenceId"],
    }
    _notify(client, "9200")
    assert client.get(f"/api/cobros/{cobro['idCobro']}", headers=admin_headers).json["estado"] == "Pendiente"


def test_failed_processing_is_recorded_and_retried(app, client, admin_headers, cobro):
    fake = app.extensions["mercadopago"]
    fake.fail = True
    r = _notify(client, "9300")
    assert r.status_code == 200
    assert r.json["msg"] == "Notificación recibida pero hubo errores"

    with session_scope(app) as s:
        row = s.query(MercadoPagoNotification).one()
        assert row.processing_status == "error"
        assert "gateway down" in row.processing_error

    fake.fail = False
    fake.payments["9300"] = {
        "id": 9300,
        "status": "approved",
        "external_reference": f"cobro_{cobro['idCobro']}_1",
    }
    assert _notify(client, "9300").json["msg"] == "Notificación procesada exitosamente"
    assert client.get(f"/api/cobros/{cobro['idCobro']}", headers=admin_headers).json["estado"] == "Pagado"


def test_unknown_cobro_reference_is_an_error(app, client):
    app.extensions["mercadopago"].payments["9400"] = {
        "id": 9400,
        "status": "approved",
        "external_reference": "cobro_4242_1",
    }
    assert _notify(client, "9400").json["msg"] == "Notificación recibida pero hubo errores"


def test_paid_pago_is_never_downgraded(app, client, admin_headers, cobro):
    app.extensions["mercadopago"].payments["9500"] = {
        "id": 9500,
        "status": "approved",
        "external_reference": f"cobro_{cobro['idCobro']}_1",
    }
    _notify(client, "9500")

    with session_scope(app) as s:
        pago = reconcile_payment(s, {"id": "9500", "status": "refunded"})
        assert pago.estado == "Pagado"
        assert pago.datos_extra["payment"]["status"] == "refunded"

    assert client.get(f"/api/cobros/{cobro['idCobro']}", headers=admin_headers).json["estado"] == "Pagado"


def test_signature_required_when_secret_set(app, client, cobro):
    app.config["MP_WEBHOOK_SECRET"] = "s3cret"
    app.extensions["mercadopago"].payments["9600"] = {
        "id": 9600,
        "status": "approved",
        "external_reference": f"cobro_{cobro['idCobro']}_1",
    }

    r = _notify(client, "9600")
    assert r.status_code == 401
    assert r.json["msg"] == "Firma inválida"

    r = _notify(client, "9600", headers=_signed_headers("otro-secreto", "9600"))
    assert r.status_code == 401

    r = _notify(client, "9600", headers=_signed_headers("s3cret", "9600"))
    assert r.status_code == 200
    assert r.json["msg"] == "Notificación procesada exitosamente"


def test_signature_is_bound_to_topic(app, client):
    app.config["MP_WEBHOOK_SECRET"] = "s3cret"
    headers = _signed_headers("s3cret", "77")

    r = client.post(WEBHOOK_URL, json={"type": "merchant_order", "data": {"id": "77"}}, headers=headers)
    assert r.status_code == 401
    assert r.json["msg"] == "Firma inválida"

    r = client.post(
        WEBHOOK_URL,
        json={"type": "merchant_order", "data": {"id": "77"}},
        headers=_signed_headers("s3cret", "77", topic="merchant_order"),
    )
    assert r.status_code == 200
    with session_scope(app) as s:
        assert s.query(MercadoPagoNotification).filter_by(resource_id="77").count() == 1


def test_query_string_format_and_other_topics(app, client, cobro):
    app.extensions["mercadopago"].payments["9700"] = {
        "id": 9700,
        "status": "approved",
        "external_reference": f"cobro_{cobro['idCobro']}_1",
    }
    r = client.post(f"{WEBHOOK_URL}?topic=payment&id=9700")
    assert r.json["msg"] == "Notificación procesada exitosamente"

    r = client.post(WEBHOOK_URL, json={"type": "merchant_order", "data": {"id": "55"}})
    assert r.json["msg"] == "Notificación procesada exitosamente"


def test_unrecognized_notification(client):
    r = client.post(WEBHOOK_URL, json={"hello": "world"})
    assert r.status_code == 200
    assert r.json["msg"] == "Formato de notificación no reconocido"
