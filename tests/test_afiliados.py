import io

from openpyxl import load_workbook

from conftest import persona_payload


def _seed(client, headers, club):
    personas = [
        persona_payload(nombreApellido="Alvarez, Juan", dni="30000001", idClub=club["idClub"], tipo="Entrenador", categoria="Mayores"),
        persona_payload(nombreApellido="Benítez, Sofía", dni="30000002", idClub=club["idClub"]),
        persona_payload(nombreApellido="Castro, Pedro", dni="30000003", fechaLicencia="2020-01-01", categoriaNivel="B"),
    ]
    for p in personas:
        r = client.post("/api/personas", json=p, headers=headers)
        assert r.status_code == 201, r.json


def test_afiliados_requires_auth(client):
    assert client.get("/api/afiliados").status_code == 401


def test_list_with_pagination_and_stats(client, admin_headers, user_headers, club):
    _seed(client, admin_headers, club)
    r = client.get("/api/afiliados?limit=2", headers=user_headers)
    assert r.status_code == 200
    assert [p["dni"] for p in r.json["data"]] == ["30000001", "30000002"]
    assert r.json["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
    assert r.json["estadisticas"] == {"total": 3, "activos": 2, "inactivos": 0, "vencidos": 1, "suspendidos": 0}

    r = client.get("/api/afiliados?limit=2&page=2", headers=user_headers)
    assert [p["dni"] for p in r.json["data"]] == ["30000003"]


def test_filters_and_sorting(client, admin_headers, user_headers, club):
    _seed(client, admin_headers, club)

    r = client.get(f"/api/afiliados?idClub={club['idClub']}&sortBy=dni&sortOrder=desc", headers=user_headers)
    assert [p["dni"] for p in r.json["data"]] == ["30000002", "30000001"]
    assert r.json["estadisticas"]["total"] == 2

    r = client.get("/api/afiliados?estadoLicencia=VENCIDO", headers=user_headers)
    assert [p["dni"] for p in r.json["data"]] == ["30000003"]

    r = client.get("/api/afiliados?fechaLicenciaHasta=2021-01-01", headers=user_headers)
    assert [p["dni"] for p in r.json["data"]] == ["30000003"]

    r = client.get("/api/afiliados?tipo=Entrenador", headers=user_headers)
    assert [p["dni"] for p in r.json["data"]] == ["30000001"]

    assert client.get("/api/afiliados?sortBy=password", headers=user_headers).status_code == 400
    assert client.get("/api/afiliados?sortOrder=sideways", headers=user_headers).status_code == 400


def test_options(client, admin_headers, user_headers, club):
    _seed(client, admin_headers, club)
    r = client.get("/api/afiliados/opciones", headers=user_headers)
    assert r.status_code == 200
    assert r.json["clubes"] == [{"idClub": club["idClub"], "nombre": club["nombre"]}]
    assert r.json["estadosLicencia"] == ["ACTIVO", "INACTIVO", "SUSPENDIDO", "VENCIDO"]
    assert r.json["tipos"] == ["Entrenador", "Jugador"]
    assert r.json["categorias"] == ["Mayores", "Sub-18"]
    assert r.json["categoriasNivel"] == ["A", "B"]


def test_export_is_admin_only(client, user_headers):
    assert client.get("/api/afiliados/exportar", headers=user_headers).status_code == 403


def test_export_xlsx(client, admin_headers, club):
    _seed(client, admin_headers, club)
    r = client.get("/api/afiliados/exportar?idClub=%d" % club["idClub"], headers=admin_headers)
    assert r.status_code == 200
    assert r.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert "attachment" in r.headers["Content-Disposition"]

    ws = load_workbook(io.BytesIO(r.data)).active
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0][:3] == ("ID", "Apellido y Nombre", "DNI")
    assert [row[1] for row in rows[1:]] == ["Alvarez, Juan", "Benítez, Sofía"]
    assert rows[1][4] == club["nombre"]
    assert rows[1][11] == "ACTIVO"
