from conftest import persona_payload


def test_list_requires_auth(client):
    assert client.get("/api/credenciales").status_code == 401


def test_list_shows_active_credentials(client, user_headers, persona):
    r = client.get("/api/credenciales", headers=user_headers)
    assert r.status_code == 200
    assert len(r.json) == 1
    cred = r.json[0]
    assert cred["idPersona"] == persona["idPersona"]
    assert cred["persona"]["dni"] == persona["dni"]


def test_manual_credential_for_player(client, admin_headers, persona):
    r = client.post(
        "/api/credenciales",
        json={
            "idPersona": persona["idPersona"],
            "identificador": "FJV-MANUAL-1",
            "fechaAlta": "2025-01-01",
            "fechaVencimiento": "2025-12-31",
        },
        headers=admin_headers,
    )
    assert r.status_code == 201
    cred = r.json["credencial"]
    assert cred["identificador"] == "FJV-MANUAL-1"
    assert cred["estado"] == "ACTIVO"

    r = client.post(
        "/api/credenciales",
        json={"idPersona": persona["idPersona"], "identificador": "FJV-MANUAL-1"},
        headers=admin_headers,
    )
    assert r.status_code == 409


def test_manual_credential_defaults_to_license_window(client, admin_headers, persona):
    r = client.post(
        "/api/credenciales",
        json={"idPersona": persona["idPersona"], "identificador": "FJV-DEFAULTS"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json["credencial"]["fechaAlta"] == persona["fechaLicencia"]
    assert r.json["credencial"]["fechaVencimiento"] == persona["fechaLicenciaBaja"]


def test_manual_credential_rejects_other_types(client, admin_headers):
    r = client.post("/api/personas", json=persona_payload(tipo="Árbitro"), headers=admin_headers)
    assert r.status_code == 201
    arbitro = r.json["persona"]

    r = client.post("/api/credenciales", json={"idPersona": arbitro["idPersona"]}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json["msg"] == "Solo jugadores o entrenadores pueden tener credenciales"


def test_manual_credential_validation(client, admin_headers, persona):
    r = client.post("/api/credenciales", json={}, headers=admin_headers)
    assert r.status_code == 400
    assert "idPersona es obligatorio." in r.json["errores"]

    r = client.post(
        "/api/credenciales",
        json={"idPersona": persona["idPersona"], "fechaAlta": "2025-05-01", "fechaVencimiento": "2025-01-01"},
        headers=admin_headers,
    )
    assert r.status_code == 400


def test_update_credential(client, admin_headers, persona):
    cred_id = persona["credencial"]["idCredencial"]
    r = client.put(
        f"/api/credenciales/{cred_id}",
        json={"estado": "SUSPENDIDO", "fechaVencimiento": "2099-01-01"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json["credencial"]["estado"] == "SUSPENDIDO"
    assert r.json["credencial"]["fechaVencimiento"] == "2099-01-01"

    r = client.put(f"/api/credenciales/{cred_id}", json={"estado": "PERDIDO"}, headers=admin_headers)
    assert r.status_code == 400


def test_delete_only_deactivates(client, admin_headers, user_headers, persona):
    cred_id = persona["credencial"]["idCredencial"]
    r = client.delete(f"/api/credenciales/{cred_id}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json["msg"] == "Credencial desactivada correctamente"

    r = client.get(f"/api/credenciales/{cred_id}", headers=user_headers)
    assert r.status_code == 200
    assert r.json["estado"] == "INACTIVO"
    assert client.get("/api/credenciales", headers=user_headers).json == []


def test_unknown_credential(client, user_headers):
    r = client.get("/api/credenciales/999", headers=user_headers)
    assert r.status_code == 404
    assert r.json["msg"] == "Credencial no encontrada"
