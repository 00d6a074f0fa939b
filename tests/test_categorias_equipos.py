def test_categoria_crud(client, admin_headers, categoria):
    assert categoria["nombre"] == "Sub-18"
    assert client.get(f"/api/categorias/{categoria['idCategoria']}").json["edadMaxima"] == 18

    r = client.put(
        f"/api/categorias/{categoria['idCategoria']}", json={"edadMaxima": 19}, headers=admin_headers
    )
    assert r.status_code == 200
    assert r.json["categoria"]["edadMaxima"] == 19

    r = client.post("/api/categorias", json={"nombre": "Sub-18"}, headers=admin_headers)
    assert r.status_code == 409


def test_categoria_age_range_validated(client, admin_headers):
    r = client.post(
        "/api/categorias", json={"nombre": "Rara", "edadMinima": 20, "edadMaxima": 10}, headers=admin_headers
    )
    assert r.status_code == 400


def test_equipo_links_club_and_categoria(client, equipo, club, categoria):
    assert equipo["club"] == {"idClub": club["idClub"], "nombre": club["nombre"]}
    assert equipo["categoria"]["idCategoria"] == categoria["idCategoria"]

    r = client.get(f"/api/equipos/filter?idClub={club['idClub']}")
    assert [e["idEquipo"] for e in r.json] == [equipo["idEquipo"]]


def test_equipo_requires_existing_club(client, admin_headers, categoria):
    r = client.post(
        "/api/equipos",
        json={"nombre": "Fantasma", "idClub": 999, "idCategoria": categoria["idCategoria"]},
        headers=admin_headers,
    )
    assert r.status_code == 400


def test_duplicate_equipo_conflicts(client, admin_headers, equipo):
    r = client.post(
        "/api/equipos",
        json={"nombre": equipo["nombre"], "idClub": equipo["idClub"], "idCategoria": equipo["idCategoria"]},
        headers=admin_headers,
    )
    assert r.status_code == 409


def test_categoria_in_use_cannot_be_deleted(client, admin_headers, equipo):
    r = client.delete(f"/api/categorias/{equipo['idCategoria']}", headers=admin_headers)
    assert r.status_code == 400

    assert client.delete(f"/api/equipos/{equipo['idEquipo']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/categorias/{equipo['idCategoria']}", headers=admin_headers).status_code == 200
