"""
License lifecycle: renewal, credential sync and the bulk expiry sweep.

A Persona's license window is [fecha_licencia, fecha_licencia + 1 year]. Its
current Credencial mirrors that window and state; both are written in the same
session transaction so readers never see them diverge.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update

from app.fjv.audit import record_event
from app.fjv.constants import (
    CREDENCIAL_PREFIX,
    ESTADO_ACTIVO,
    ESTADO_INACTIVO,
    ESTADO_VENCIDO,
)
from app.fjv.errors import ValidationError
from app.fjv.modules.credenciales.models import Credencial
from app.fjv.modules.personas.models import Persona
from app.fjv.utils import add_one_year

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fjv.models import Usuario

logger = logging.getLogger(__name__)

_SWEEP_CHUNK = 500


def credencial_identificador(persona_id: int, year: int) -> str:
    return f"{CREDENCIAL_PREFIX}-{persona_id}-{year}"


def estado_para(fecha_baja: date | None, today: date | None = None) -> str:
    today = today or date.today()
    if fecha_baja is None or fecha_baja >= today:
        return ESTADO_ACTIVO
    return ESTADO_VENCIDO


def aplicar_ventana_licencia(persona: Persona, inicio: date, today: date | None = None) -> None:
    """Set start, computed expiry and the derived state on a Persona."""
    persona.fecha_licencia = inicio
    persona.fecha_licencia_baja = add_one_year(inicio)
    persona.estado_licencia = estado_para(persona.fecha_licencia_baja, today)


def credencial_actual(s: "Session", persona_id: int) -> Credencial | None:
    return (
        s.query(Credencial)
        .filter(Credencial.persona_id == persona_id)
        .order_by(Credencial.fecha_alta.desc(), Credencial.id.desc())
        .first()
    )


def sync_credencial(s: "Session", persona: Persona) -> Credencial:
    """
    Update the Persona's current credential to match its license window, or create one.
    Must run inside the same transaction as the Persona change.
    """
    if persona.fecha_licencia is None or persona.fecha_licencia_baja is None:
        raise ValidationError("La persona no tiene una licencia vigente para generar la credencial.")
    if persona.id is None:
        s.flush()

    identificador = credencial_identificador(persona.id, persona.fecha_licencia.year)
    cred = (
        s.query(Credencial)
        .filter(Credencial.persona_id == persona.id, Credencial.identificador == identificador)
        .one_or_none()
    )
    if cred is None:
        cred = credencial_actual(s, persona.id)

    if cred is None:
        cred = Credencial(
            persona=persona,
            identificador=identificador,
            fecha_alta=persona.fecha_licencia,
            fecha_vencimiento=persona.fecha_licencia_baja,
            estado=persona.estado_licencia,
        )
        s.add(cred)
    else:
        cred.identificador = identificador
        cred.fecha_alta = persona.fecha_licencia
        cred.fecha_vencimiento = persona.fecha_licencia_baja
        cred.estado = persona.estado_licencia
    s.flush()
    return cred


def renovar_licencia(
    s: "Session",
    persona: Persona,
    user: "Usuario | None",
    *,
    fecha: date | None = None,
    today: date | None = None,
) -> Credencial:
    """
    Renew a license starting today (or at `fecha`): expiry is one year later and
    the state is ACTIVO. The credential is updated or created in the same transaction.
    """
    today = today or date.today()
    inicio = fecha or today
    if add_one_year(inicio) < today:
        raise ValidationError("La fecha de licencia indicada da una licencia ya vencida.")

    old = {
        "fecha_licencia": str(persona.fecha_licencia),
        "fecha_licencia_baja": str(persona.fecha_licencia_baja),
        "estado_licencia": persona.estado_licencia,
    }
    persona.fecha_licencia = inicio
    persona.fecha_licencia_baja = add_one_year(inicio)
    persona.estado_licencia = ESTADO_ACTIVO
    cred = sync_credencial(s, persona)
    retiradas = _retirar_otras_credenciales(s, persona.id, cred.id)

    record_event(
        s,
        actor=user,
        action="licencia.renovar",
        entity_type="Persona",
        entity_id=str(persona.id),
        metadata={
            "old": old,
            "fecha_licencia": str(persona.fecha_licencia),
            "fecha_licencia_baja": str(persona.fecha_licencia_baja),
            "credencial": cred.identificador,
            "retiradas": retiradas,
        },
    )
    return cred


def _retirar_otras_credenciales(s: "Session", persona_id: int, actual_id: int) -> list[str]:
    """After a renewal the renewed credential is the Persona's only ACTIVO one."""
    otras = (
        s.query(Credencial)
        .filter(
            Credencial.persona_id == persona_id,
            Credencial.id != actual_id,
            Credencial.estado == ESTADO_ACTIVO,
        )
        .all()
    )
    for otra in otras:
        otra.estado = ESTADO_INACTIVO
    if otras:
        s.flush()
    return [c.identificador for c in otras]


def _ids(q) -> list[int]:
    return [row[0] for row in q.all()]


def _bulk_set_estado(s: "Session", persona_ids: list[int], estado: str) -> None:
    now = datetime.utcnow()
    # Only the credential mirroring the license window follows the Persona;
    # older or manually issued credentials keep their own state.
    ventana_actual = (
        select(Persona.fecha_licencia_baja).where(Persona.id == Credencial.persona_id).scalar_subquery()
    )
    for i in range(0, len(persona_ids), _SWEEP_CHUNK):
        chunk = persona_ids[i : i + _SWEEP_CHUNK]
        s.execute(
            update(Persona)
            .where(Persona.id.in_(chunk))
            .values(estado_licencia=estado, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        s.execute(
            update(Credencial)
            .where(Credencial.persona_id.in_(chunk), Credencial.fecha_vencimiento == ventana_actual)
            .values(estado=estado, updated_at=now)
            .execution_options(synchronize_session=False)
        )


def actualizar_estado_licencias(s: "Session", user: "Usuario | None", *, today: date | None = None) -> dict:
    """
    Recompute estado_licencia for every Persona with a license, from fecha_licencia_baja vs today.

    - expired and ACTIVO/INACTIVO -> VENCIDO
    - in force and INACTIVO/VENCIDO -> ACTIVO
    - SUSPENDIDO is an administrative hold and is left alone

    Changed states cascade to the credential whose vencimiento matches the license window.
    Running it twice changes nothing the second time.
    """
    today = today or date.today()
    con_licencia = s.query(Persona.id).filter(
        Persona.fecha_licencia.isnot(None),
        Persona.fecha_licencia_baja.isnot(None),
    )
    vencer = _ids(
        con_licencia.filter(
            Persona.fecha_licencia_baja < today,
            Persona.estado_licencia.in_((ESTADO_ACTIVO, ESTADO_INACTIVO)),
        )
    )
    reactivar = _ids(
        con_licencia.filter(
            Persona.fecha_licencia_baja >= today,
            Persona.estado_licencia.in_((ESTADO_INACTIVO, ESTADO_VENCIDO)),
        )
    )

    _bulk_set_estado(s, vencer, ESTADO_VENCIDO)
    _bulk_set_estado(s, reactivar, ESTADO_ACTIVO)
    if vencer or reactivar:
        s.expire_all()

    total = s.query(func.count(Persona.id)).filter(Persona.fecha_licencia.isnot(None)).scalar() or 0
    result = {
        "actualizadas": len(vencer) + len(reactivar),
        "vencidas": len(vencer),
        "reactivadas": len(reactivar),
        "totalPersonas": total,
    }
    record_event(
        s,
        actor=user,
        action="licencia.sweep",
        entity_type="Persona",
        metadata={**result, "fecha": today.isoformat()},
    )
    logger.info("License sweep: %s", result)
    return result
