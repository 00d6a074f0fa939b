import io

import pytest

from conftest import PNG_BYTES


def _png(name: str = "foto.png"):
    return (io.BytesIO(PNG_BYTES), name, "image/png")


@pytest.fixture()
def galeria(client, admin_headers):
    r = client.post(
        "/api/galerias",
        json={"nombre": "Final Liga Jujeña 2024", "descripcion": "Fotos de la final"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.json
    return r.json["galeria"]


def _subir(client, headers, galeria_id: int, *names: str):
    return client.post(
        f"/api/galerias/{galeria_id}/imagenes",
        data={"imagenes": [_png(n) for n in names]},
        headers=headers,
        content_type="multipart/form-data",
    )


def test_create_galeria(galeria):
    assert galeria["publicada"] is True
    assert galeria["imagenes"] == []
    assert galeria["totalImagenes"] == 0


def test_create_requires_admin_and_name(client, admin_headers, user_headers):
    assert client.post("/api/galerias", json={"nombre": "X"}, headers=user_headers).status_code == 403
    r = client.post("/api/galerias", json={"nombre": "  "}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json["msg"] == "El nombre de la galería es obligatorio"


def test_unpublished_galleries_are_hidden(app, client, admin_headers, user_headers, galeria):
    r = client.post("/api/galerias", json={"nombre": "Borrador", "publicada": False}, headers=admin_headers)
    borrador = r.json["galeria"]

    publicas = app.test_client().get("/api/galerias").json
    assert [g["idGaleria"] for g in publicas] == [galeria["idGaleria"]]
    assert len(client.get("/api/galerias", headers=admin_headers).json) == 2

    assert client.get(f"/api/galerias/{borrador['idGaleria']}", headers=user_headers).status_code == 403
    assert client.get(f"/api/galerias/{borrador['idGaleria']}", headers=admin_headers).status_code == 200
    assert client.get("/api/galerias/999").status_code == 404


def test_upload_images_sets_cover_and_order(app, client, admin_headers, galeria):
    r = _subir(client, admin_headers, galeria["idGaleria"], "a.png", "b.png")
    assert r.status_code == 201
    assert r.json["errores"] == []
    assert [i["orden"] for i in r.json["imagenes"]] == [1, 2]
    assert r.json["imagenes"][0]["metadatos"]["nombreOriginal"] == "a.png"

    r = _subir(client, admin_headers, galeria["idGaleria"], "c.png")
    assert r.json["imagenes"][0]["orden"] == 3

    detalle = client.get(f"/api/galerias/{galeria['idGaleria']}").json
    assert detalle["portada"] == "https://img.test/1.png"
    assert detalle["totalImagenes"] == 3
    assert [i["url"] for i in detalle["imagenes"]] == [f"https://img.test/{n}.png" for n in (1, 2, 3)]

    listado = client.get("/api/galerias").json
    assert len(listado[0]["imagenes"]) == 1
    assert listado[0]["totalImagenes"] == 3


def test_upload_validation(app, client, admin_headers, galeria):
    r = client.post(
        f"/api/galerias/{galeria['idGaleria']}/imagenes",
        data={},
        headers=admin_headers,
        content_type="multipart/form-data",
    )
    assert r.status_code == 400
    assert r.json["msg"] == "No se recibieron imágenes"

    r = _subir(client, admin_headers, galeria["idGaleria"], *[f"{n}.png" for n in range(6)])
    assert r.status_code == 400

    app.extensions["image_host"].fail_uploads = True
    r = _subir(client, admin_headers, galeria["idGaleria"], "a.png")
    assert r.status_code == 502
    assert r.json["errores"][0]["archivo"] == "a.png"


def test_reorder_and_cover(client, admin_headers, galeria):
    imagenes = _subir(client, admin_headers, galeria["idGaleria"], "a.png", "b.png").json["imagenes"]
    primera, segunda = imagenes

    r = client.post(
        f"/api/galerias/{galeria['idGaleria']}/reordenar",
        json={"ordenamiento": [{"idImagen": primera["idImagen"], "orden": 5}, {"idImagen": segunda["idImagen"], "orden": 1}]},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert [i["idImagen"] for i in r.json["imagenes"]] == [segunda["idImagen"], primera["idImagen"]]

    r = client.post(
        f"/api/galerias/{galeria['idGaleria']}/reordenar",
        json={"ordenamiento": [{"idImagen": 999, "orden": 1}]},
        headers=admin_headers,
    )
    assert r.status_code == 400

    r = client.put(f"/api/galerias/{galeria['idGaleria']}/portada/{segunda['idImagen']}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json["galeria"]["portada"] == segunda["url"]

    r = client.put(f"/api/galerias/{galeria['idGaleria']}/portada/999", headers=admin_headers)
    assert r.status_code == 404


def test_update_and_delete_image(app, client, admin_headers, galeria):
    imagenes = _subir(client, admin_headers, galeria["idGaleria"], "a.png", "b.png").json["imagenes"]
    primera = imagenes[0]

    r = client.put(
        f"/api/galerias/imagen/{primera['idImagen']}",
        json={"titulo": "Podio", "descripcion": "Entrega de medallas"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json["imagen"]["titulo"] == "Podio"

    r = client.delete(f"/api/galerias/imagen/{primera['idImagen']}?eliminarDeImgbb=true", headers=admin_headers)
    assert r.status_code == 200
    assert app.extensions["image_host"].deleted == ["https://img.test/delete/1"]

    detalle = client.get(f"/api/galerias/{galeria['idGaleria']}").json
    assert detalle["totalImagenes"] == 1
    assert detalle["portada"] == imagenes[1]["url"]


def test_update_galeria(client, admin_headers, galeria):
    r = client.put(
        f"/api/galerias/{galeria['idGaleria']}",
        json={"nombre": "Final 2024", "publicada": "no"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json["galeria"]["nombre"] == "Final 2024"
    assert r.json["galeria"]["publicada"] is False

    r = client.put(f"/api/galerias/{galeria['idGaleria']}", json={"publicada": "quizás"}, headers=admin_headers)
    assert r.status_code == 400


def test_search(client, admin_headers, galeria):
    client.post("/api/galerias", json={"nombre": "Torneo Sub-14"}, headers=admin_headers)
    r = client.get("/api/galerias/buscar/galerias?query=final")
    assert [g["nombre"] for g in r.json] == ["Final Liga Jujeña 2024"]

    r = client.get("/api/galerias/buscar/galerias?query=medallas")
    assert r.json == []

    assert client.get("/api/galerias/buscar/galerias").status_code == 400


def test_delete_galeria_removes_hosted_images(app, client, admin_headers, galeria):
    _subir(client, admin_headers, galeria["idGaleria"], "a.png", "b.png")
    r = client.delete(f"/api/galerias/{galeria['idGaleria']}?eliminarImagenesImgbb=true", headers=admin_headers)
    assert r.status_code == 200
    assert sorted(app.extensions["image_host"].deleted) == ["https://img.test/delete/1", "https://img.test/delete/2"]
    assert client.get(f"/api/galerias/{galeria['idGaleria']}").status_code == 404
