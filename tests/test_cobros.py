def test_create_cobro(cobro, club, equipo):
    assert cobro["estado"] == "Pendiente"
    assert cobro["monto"] == "15000.50"
    assert cobro["club"]["idClub"] == club["idClub"]
    assert cobro["equipo"]["idEquipo"] == equipo["idEquipo"]


def test_create_cobro_validation(client, admin_headers, club):
    r = client.post("/api/cobros", json={"monto": "-5"}, headers=admin_headers)
    assert r.status_code == 400
    assert set(r.json["errores"]) == {
        "El concepto del cobro es obligatorio",
        "El monto debe ser mayor que cero",
        "Debe especificar el club al que se realiza el cobro",
    }

    r = client.post(
        "/api/cobros", json={"idClub": 999, "monto": "10", "concepto": "Multa"}, headers=admin_headers
    )
    assert r.status_code == 400
    assert r.json["msg"] == "El Club con ID 999 no existe"


def test_equipo_must_belong_to_club(client, admin_headers, equipo):
    r = client.post(
        "/api/clubs",
        json={
            "nombre": "Club Gimnasia",
            "direccion": "Calle 2",
            "email": "gimnasia@club.org.ar",
            "cuit": "30-87654321-0",
            "fechaAfiliacion": "2021-03-01",
            "estadoAfiliacion": "Activo",
        },
        headers=admin_headers,
    )
    assert r.status_code == 201, r.json
    otro = r.json["club"]
    r = client.post(
        "/api/cobros",
        json={"idClub": otro["idClub"], "idEquipo": equipo["idEquipo"], "monto": "10", "concepto": "Multa"},
        headers=admin_headers,
    )
    assert r.status_code == 400


def test_cobros_require_auth(app, cobro):
    assert app.test_client().get("/api/cobros").status_code == 401


def test_filters(client, user_headers, cobro, club, equipo):
    assert len(client.get(f"/api/cobros/club/{club['idClub']}", headers=user_headers).json) == 1
    assert len(client.get(f"/api/cobros/equipo/{equipo['idEquipo']}", headers=user_headers).json) == 1
    assert client.get("/api/cobros/filter?estado=Pagado", headers=user_headers).json == []
    assert client.get("/api/cobros/club/999", headers=user_headers).status_code == 404


def test_manual_payment_records_pago(client, admin_headers, user_headers, cobro):
    r = client.put(
        f"/api/cobros/{cobro['idCobro']}/estado",
        json={"estado": "Pagado", "comprobantePago": "REC-0001"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json["cobro"]["estado"] == "Pagado"
    assert r.json["cobro"]["comprobantePago"] == "REC-0001"
    assert r.json["pago"]["estado"] == "Pagado"
    assert r.json["pago"]["metodoPago"] == "Manual"
    assert r.json["pago"]["monto"] == "15000.50"

    pagos = client.get(f"/api/cobros/{cobro['idCobro']}/pagos", headers=user_headers).json
    assert [p["estado"] for p in pagos] == ["Pagado"]


def test_paid_cobro_is_terminal(client, admin_headers, cobro):
    url = f"/api/cobros/{cobro['idCobro']}"
    client.put(f"{url}/estado", json={"estado": "Pagado"}, headers=admin_headers)

    r = client.put(f"{url}/estado", json={"estado": "Pendiente"}, headers=admin_headers)
    assert r.status_code == 400
    assert "No se puede cambiar el estado de 'Pagado' a 'Pendiente'" in r.json["errores"]

    r = client.put(url, json={"monto": "1"}, headers=admin_headers)
    assert r.status_code == 400

    r = client.delete(url, headers=admin_headers)
    assert r.status_code == 400
    assert r.json["msg"] == "No se puede eliminar un cobro pagado"

    r = client.post(f"{url}/pagos", json={}, headers=admin_headers)
    assert r.status_code == 400


def test_state_transitions(client, admin_headers, cobro):
    url = f"/api/cobros/{cobro['idCobro']}/estado"
    assert client.put(url, json={"estado": "Vencido"}, headers=admin_headers).json["cobro"]["estado"] == "Vencido"
    assert client.put(url, json={"estado": "Pendiente"}, headers=admin_headers).status_code == 200
    assert client.put(url, json={"estado": "Anulado"}, headers=admin_headers).status_code == 200
    assert client.put(url, json={"estado": "Pendiente"}, headers=admin_headers).status_code == 400
    assert client.put(url, json={"estado": "Cobrado"}, headers=admin_headers).status_code == 400


def test_pending_payment_keeps_cobro_pending(client, admin_headers, cobro):
    r = client.post(
        f"/api/cobros/{cobro['idCobro']}/pagos",
        json={"estado": "Pendiente", "monto": "5000", "metodoPago": "Transferencia"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json["cobro"]["estado"] == "Pendiente"
    pago = r.json["pago"]

    r = client.put(f"/api/pagos/{pago['idPago']}", json={"estado": "Pagado"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["pago"]["estado"] == "Pagado"
    assert r.json["pago"]["fechaPago"] is not None

    r = client.get(f"/api/cobros/{cobro['idCobro']}", headers=admin_headers)
    assert r.json["estado"] == "Pagado"

    r = client.put(f"/api/pagos/{pago['idPago']}", json={"estado": "Rechazado"}, headers=admin_headers)
    assert r.status_code == 400


def test_duplicate_payment_id_rejected(client, admin_headers, cobro):
    url = f"/api/cobros/{cobro['idCobro']}/pagos"
    assert client.post(url, json={"estado": "Pendiente", "paymentId": "TX-1"}, headers=admin_headers).status_code == 201
    r = client.post(url, json={"estado": "Pendiente", "paymentId": "TX-1"}, headers=admin_headers)
    assert r.status_code == 400


def test_update_and_delete(client, admin_headers, user_headers, cobro):
    url = f"/api/cobros/{cobro['idCobro']}"
    r = client.put(url, json={"monto": "18000", "observaciones": "Ajuste"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["cobro"]["monto"] == "18000.00"
    assert r.json["cobro"]["observaciones"] == "Ajuste"

    assert client.delete(url, headers=admin_headers).status_code == 200
    assert client.get(url, headers=user_headers).status_code == 404


def test_mercadopago_preference(app, client, user_headers, cobro):
    r = client.post(f"/api/cobros/{cobro['idCobro']}/mercadopago", headers=user_headers)
    assert r.status_code == 201
    assert r.json["preferenceId"] == "pref-1"
    assert r.json["initPoint"] == "https://mp.test/checkout/pref-1"
    assert r.json["externalReference"].startswith(f"cobro_{cobro['idCobro']}_")
    assert r.json["pago"]["estado"] == "Pendiente"
    assert r.json["pago"]["metodoPago"] == "MercadoPago"

    sent = app.extensions["mercadopago"].preferences[0]
    assert sent["title"] == "Inscripción Torneo Apertura"
    assert sent["amount"] == 15000.5


def test_mercadopago_not_configured(app, client, user_headers, cobro):
    app.extensions["mercadopago"].configured = False
    r = client.post(f"/api/cobros/{cobro['idCobro']}/mercadopago", headers=user_headers)
    assert r.status_code == 503


def test_mercadopago_failure_is_502(app, client, user_headers, cobro):
    app.extensions["mercadopago"].fail = True
    r = client.post(f"/api/cobros/{cobro['idCobro']}/mercadopago", headers=user_headers)
    assert r.status_code == 502
    assert client.get(f"/api/cobros/{cobro['idCobro']}/pagos", headers=user_headers).json == []


def test_paid_cobro_rejects_checkout(client, admin_headers, cobro):
    client.put(f"/api/cobros/{cobro['idCobro']}/estado", json={"estado": "Pagado"}, headers=admin_headers)
    r = client.post(f"/api/cobros/{cobro['idCobro']}/mercadopago", headers=admin_headers)
    assert r.status_code == 400
