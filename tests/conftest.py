from __future__ import annotations

from datetime import date

import pytest
from werkzeug.security import generate_password_hash

from app.fjv import create_app
from app.fjv.auth import _login_attempts
from app.fjv.constants import DEFAULT_ROLES, ROL_ADMIN, ROL_USUARIO
from app.fjv.db import session_scope
from app.fjv.imagehost import HostedImage, ImageHost, ImageHostError
from app.fjv.models import Base, Rol, Usuario
from app.fjv.modules.webhooks.mercadopago import MercadoPagoError

ADMIN_EMAIL = "admin@fjv.org.ar"
USER_EMAIL = "usuario@fjv.org.ar"
PASSWORD = "pw-123456"

# Minimal valid PNG header; the fake image host never decodes it.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeImageHost(ImageHost):
    def __init__(self):
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.fail_uploads = False

    def upload(self, data: bytes, name: str, *, content_type: str | None = None) -> HostedImage:
        if self.fail_uploads:
            raise ImageHostError("upload rejected")
        self.uploaded.append(name)
        n = len(self.uploaded)
        return HostedImage(
            url=f"https://img.test/{n}.png",
            thumb_url=f"https://img.test/{n}_t.png",
            delete_url=f"https://img.test/delete/{n}",
            width=100,
            height=80,
            size=len(data),
        )

    def delete(self, delete_url: str) -> bool:
        self.deleted.append(delete_url)
        return True


class FakeMercadoPago:
    def __init__(self):
        self.payments: dict[str, dict] = {}
        self.preferences: list[dict] = []
        self.configured = True
        self.fail = False

    def get_payment(self, payment_id: str) -> dict:
        if self.fail:
            raise MercadoPagoError("gateway down")
        if payment_id not in self.payments:
            raise MercadoPagoError(f"payment {payment_id} not found")
        return self.payments[payment_id]

    def create_preference(self, *, title, amount, external_reference, back_urls=None) -> dict:
        if self.fail:
            raise MercadoPagoError("gateway down")
        pref_id = f"pref-{len(self.preferences) + 1}"
        self.preferences.append(
            {"id": pref_id, "title": title, "amount": amount, "external_reference": external_reference}
        )
        return {
            "id": pref_id,
            "init_point": f"https://mp.test/checkout/{pref_id}",
            "sandbox_init_point": f"https://sandbox.mp.test/checkout/{pref_id}",
        }


@pytest.fixture(autouse=True)
def _reset_login_rate_limit():
    _login_attempts.clear()
    yield
    _login_attempts.clear()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("IMAGE_HOST_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    for k in (
        "JWT_SECRET",
        "MP_ACCESS_TOKEN",
        "MP_WEBHOOK_SECRET",
        "MP_NOTIFICATION_URL",
        "IMGBB_API_KEY",
        "GOOGLE_CLIENT_ID",
        "GOOGLE_CLIENT_SECRET",
        "LINKEDIN_CLIENT_ID",
        "LINKEDIN_CLIENT_SECRET",
    ):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    app.config["TESTING"] = True

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    app.extensions["image_host"] = FakeImageHost()
    app.extensions["mercadopago"] = FakeMercadoPago()

    with session_scope(app) as s:
        roles = {nombre: Rol(nombre=nombre, descripcion=desc) for nombre, desc in DEFAULT_ROLES.items()}
        s.add_all(roles.values())
        s.add_all(
            [
                Usuario(
                    nombre="Admin",
                    apellido="FJV",
                    email=ADMIN_EMAIL,
                    password_hash=generate_password_hash(PASSWORD),
                    is_active=True,
                    rol=roles[ROL_ADMIN],
                ),
                Usuario(
                    nombre="Ana",
                    apellido="Pérez",
                    email=USER_EMAIL,
                    password_hash=generate_password_hash(PASSWORD),
                    is_active=True,
                    rol=roles[ROL_USUARIO],
                ),
            ]
        )
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _token(client, email: str) -> str:
    r = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200, r.json
    return r.json["token"]


@pytest.fixture()
def admin_headers(client):
    return {"Authorization": f"Bearer {_token(client, ADMIN_EMAIL)}"}


@pytest.fixture()
def user_headers(client):
    return {"Authorization": f"Bearer {_token(client, USER_EMAIL)}"}


@pytest.fixture()
def club(client, admin_headers):
    r = client.post(
        "/api/clubs",
        json={
            "nombre": "Club Atlético Jujuy",
            "direccion": "Av. Siempre Viva 123",
            "email": "contacto@caj.org.ar",
            "cuit": "30-12345678-9",
            "fechaAfiliacion": "2020-01-15",
            "estadoAfiliacion": "Activo",
        },
        headers=admin_headers,
    )
    assert r.status_code == 201, r.json
    return r.json["club"]


@pytest.fixture()
def categoria(client, admin_headers):
    r = client.post(
        "/api/categorias",
        json={"nombre": "Sub-18", "tipo": "Mixto", "edadMinima": 15, "edadMaxima": 18},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.json
    return r.json["categoria"]


@pytest.fixture()
def equipo(client, admin_headers, club, categoria):
    r = client.post(
        "/api/equipos",
        json={"nombre": "CAJ Sub-18", "idClub": club["idClub"], "idCategoria": categoria["idCategoria"]},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.json
    return r.json["equipo"]


def persona_payload(**overrides) -> dict:
    payload = {
        "nombreApellido": "Gómez, Lucía",
        "dni": "40111222",
        "fechaNacimiento": "2005-06-10",
        "tipo": "Jugador",
        "categoria": "Sub-18",
        "categoriaNivel": "A",
        "fechaLicencia": date.today().isoformat(),
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def persona(client, admin_headers, club):
    r = client.post("/api/personas", json=persona_payload(idClub=club["idClub"]), headers=admin_headers)
    assert r.status_code == 201, r.json
    return r.json["persona"]


@pytest.fixture()
def cobro(client, admin_headers, club, equipo):
    r = client.post(
        "/api/cobros",
        json={
            "idClub": club["idClub"],
            "idEquipo": equipo["idEquipo"],
            "monto": "15000.50",
            "concepto": "Inscripción Torneo Apertura",
            "fechaVencimiento": "2030-03-31",
        },
        headers=admin_headers,
    )
    assert r.status_code == 201, r.json
    return r.json["cobro"]
