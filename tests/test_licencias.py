from datetime import date, timedelta

import pytest

from app.fjv.constants import ESTADO_ACTIVO, ESTADO_INACTIVO, ESTADO_SUSPENDIDO, ESTADO_VENCIDO
from app.fjv.db import session_scope
from app.fjv.errors import ValidationError
from app.fjv.modules.credenciales.models import Credencial
from app.fjv.modules.personas.licencias import (
    actualizar_estado_licencias,
    aplicar_ventana_licencia,
    renovar_licencia,
    sync_credencial,
)
from app.fjv.modules.personas.models import Persona
from app.fjv.utils import add_one_year

from scripts.actualizar_licencias import run_sweep


def _persona(s, dni: str, inicio: date, today: date, *, estado: str | None = None) -> Persona:
    p = Persona(nombre_apellido=f"Persona {dni}", dni=dni, fecha_nacimiento=date(2000, 1, 1), tipo="Jugador")
    aplicar_ventana_licencia(p, inicio, today)
    if estado:
        p.estado_licencia = estado
    s.add(p)
    s.flush()
    sync_credencial(s, p)
    return p


def _credenciales(s, persona_id: int) -> list[Credencial]:
    return s.query(Credencial).filter(Credencial.persona_id == persona_id).all()


def test_renewal_moves_window_and_reuses_credential(app):
    with session_scope(app) as s:
        p = _persona(s, "1001", date(2023, 2, 1), date(2024, 3, 1))
        assert p.estado_licencia == ESTADO_VENCIDO

        cred = renovar_licencia(s, p, None, fecha=date(2024, 3, 1), today=date(2024, 3, 1))

        assert p.fecha_licencia == date(2024, 3, 1)
        assert p.fecha_licencia_baja == date(2025, 3, 1)
        assert p.estado_licencia == ESTADO_ACTIVO
        assert cred.identificador == f"FJV-{p.id}-2024"
        assert cred.fecha_alta == date(2024, 3, 1)
        assert cred.fecha_vencimiento == date(2025, 3, 1)
        assert cred.estado == ESTADO_ACTIVO
        assert len(_credenciales(s, p.id)) == 1


def test_renewal_on_leap_day_expires_first_of_march(app):
    with session_scope(app) as s:
        p = _persona(s, "1002", date(2023, 3, 1), date(2024, 2, 29))
        cred = renovar_licencia(s, p, None, fecha=date(2024, 2, 29), today=date(2024, 2, 29))
        assert p.fecha_licencia_baja == date(2025, 3, 1)
        assert cred.fecha_vencimiento == date(2025, 3, 1)


def test_renewal_defaults_to_today(app):
    today = date(2024, 6, 15)
    with session_scope(app) as s:
        p = _persona(s, "1003", date(2023, 1, 1), today)
        renovar_licencia(s, p, None, today=today)
        assert p.fecha_licencia == today
        assert p.fecha_licencia_baja == date(2025, 6, 15)


def test_renewal_rejects_already_expired_window(app):
    with session_scope(app) as s:
        p = _persona(s, "1004", date(2024, 1, 1), date(2024, 6, 1))
        with pytest.raises(ValidationError):
            renovar_licencia(s, p, None, fecha=date(2022, 1, 1), today=date(2024, 6, 1))


def test_sweep_expires_reactivates_and_is_idempotent(app):
    today = date(2024, 6, 1)
    with session_scope(app) as s:
        vencida = _persona(s, "2001", date(2023, 5, 1), date(2023, 6, 1))
        vigente = _persona(s, "2002", date(2024, 1, 1), today)
        vigente.estado_licencia = ESTADO_VENCIDO
        suspendida = _persona(s, "2003", date(2022, 1, 1), date(2022, 2, 1), estado=ESTADO_SUSPENDIDO)
        ids = (vencida.id, vigente.id, suspendida.id)

    with session_scope(app) as s:
        result = actualizar_estado_licencias(s, None, today=today)
    assert result == {"actualizadas": 2, "vencidas": 1, "reactivadas": 1, "totalPersonas": 3}

    with session_scope(app) as s:
        estados = {p.id: p.estado_licencia for p in s.query(Persona).all()}
        assert estados == {ids[0]: ESTADO_VENCIDO, ids[1]: ESTADO_ACTIVO, ids[2]: ESTADO_SUSPENDIDO}
        assert [c.estado for c in _credenciales(s, ids[0])] == [ESTADO_VENCIDO]
        assert [c.estado for c in _credenciales(s, ids[1])] == [ESTADO_ACTIVO]
        assert [c.estado for c in _credenciales(s, ids[2])] == [ESTADO_SUSPENDIDO]

    with session_scope(app) as s:
        again = actualizar_estado_licencias(s, None, today=today)
    assert again["actualizadas"] == 0


def test_only_current_credential_follows_sweep_and_renewal(app):
    today = date(2025, 9, 1)
    with session_scope(app) as s:
        p = _persona(s, "2101", date(2025, 6, 1), today)
        actual = _credenciales(s, p.id)[0]
        historica = Credencial(
            persona_id=p.id,
            identificador=f"FJV-{p.id}-2024",
            fecha_alta=date(2024, 8, 10),
            fecha_vencimiento=date(2025, 8, 10),
            estado=ESTADO_VENCIDO,
        )
        manual = Credencial(
            persona_id=p.id,
            identificador=f"MAN-{p.id}",
            fecha_alta=date(2025, 1, 15),
            fecha_vencimiento=date(2026, 1, 15),
            estado=ESTADO_ACTIVO,
        )
        s.add_all([historica, manual])
        p.estado_licencia = ESTADO_INACTIVO
        actual.estado = ESTADO_INACTIVO
        pid, actual_id = p.id, actual.id

    with session_scope(app) as s:
        assert actualizar_estado_licencias(s, None, today=today)["reactivadas"] == 1

    with session_scope(app) as s:
        estados = {c.identificador: c.estado for c in _credenciales(s, pid)}
        assert estados == {
            f"FJV-{pid}-2025": ESTADO_ACTIVO,
            f"FJV-{pid}-2024": ESTADO_VENCIDO,
            f"MAN-{pid}": ESTADO_ACTIVO,
        }

    with session_scope(app) as s:
        cred = renovar_licencia(s, s.get(Persona, pid), None, fecha=today, today=today)
        assert cred.id == actual_id

    with session_scope(app) as s:
        activas = [c for c in _credenciales(s, pid) if c.estado == ESTADO_ACTIVO]
        assert [(c.identificador, c.fecha_alta, c.fecha_vencimiento) for c in activas] == [
            (f"FJV-{pid}-2025", date(2025, 9, 1), date(2026, 9, 1))
        ]
        estados = {c.identificador: c.estado for c in _credenciales(s, pid)}
        assert estados[f"FJV-{pid}-2024"] == ESTADO_VENCIDO
        assert estados[f"MAN-{pid}"] == ESTADO_INACTIVO


def test_sweep_script_uses_database_url(app):
    with session_scope(app) as s:
        pid = _persona(s, "3001", date(2023, 1, 10), date(2023, 2, 1)).id

    result = run_sweep(database_url=app.config["DATABASE_URL"], today=date(2024, 2, 1))
    assert result["vencidas"] == 1

    with session_scope(app) as s:
        assert s.get(Persona, pid).estado_licencia == ESTADO_VENCIDO


def test_renew_endpoint(client, admin_headers, persona):
    r = client.put(f"/api/personas/{persona['idPersona']}/renovar", json={}, headers=admin_headers)
    assert r.status_code == 200
    today = date.today()
    assert r.json["persona"]["fechaLicencia"] == today.isoformat()
    assert r.json["persona"]["fechaLicenciaBaja"] == add_one_year(today).isoformat()
    assert r.json["credencial"]["identificador"] == f"FJV-{persona['idPersona']}-{today.year}"
    assert r.json["credencial"]["idCredencial"] == persona["credencial"]["idCredencial"]


def test_renew_endpoint_rejects_expired_date(client, admin_headers, persona):
    viejo = (date.today() - timedelta(days=800)).isoformat()
    r = client.put(
        f"/api/personas/{persona['idPersona']}/renovar", json={"fechaLicencia": viejo}, headers=admin_headers
    )
    assert r.status_code == 400


def test_renew_endpoint_is_admin_only(client, user_headers, persona):
    r = client.put(f"/api/personas/{persona['idPersona']}/renovar", json={}, headers=user_headers)
    assert r.status_code == 403


def test_sweep_endpoint(app, client, admin_headers, persona):
    with session_scope(app) as s:
        _persona(s, "4001", date(2020, 1, 1), date(2021, 6, 1), estado=ESTADO_ACTIVO)

    r = client.post("/api/personas/actualizar-estado-licencias", headers=admin_headers)
    assert r.status_code == 200
    assert r.json["vencidas"] == 1
    assert r.json["totalPersonas"] == 2

    r = client.post("/api/personas/actualizar-estado-licencias", headers=admin_headers)
    assert r.json["actualizadas"] == 0
