from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from app.fjv.audit import record_event
from app.fjv.constants import ESTADO_ACTIVO, ESTADO_INACTIVO, ESTADOS_LICENCIA
from app.fjv.errors import ConflictError, ValidationError, raise_if_errors
from app.fjv.modules.credenciales.models import Credencial
from app.fjv.modules.personas.licencias import credencial_identificador
from app.fjv.modules.personas.models import Persona
from app.fjv.utils import add_one_year, clean_str, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fjv.models import Usuario

# Only players and coaches carry a credential.
TIPOS_CON_CREDENCIAL = ("Jugador", "Entrenador")


def validate_credencial_payload(payload: dict, *, creating: bool) -> list[str]:
    errors = []
    if creating and payload.get("idPersona") in (None, ""):
        errors.append("idPersona es obligatorio.")
    for key in ("fechaAlta", "fechaVencimiento"):
        try:
            parse_date(payload.get(key), key)
        except ValidationError as e:
            errors.append(e.msg)
    estado = clean_str(payload.get("estado"))
    if estado and estado not in ESTADOS_LICENCIA:
        errors.append(f"Estado inválido. Debe ser uno de: {', '.join(ESTADOS_LICENCIA)}")
    if not errors:
        alta = parse_date(payload.get("fechaAlta"), "fechaAlta")
        venc = parse_date(payload.get("fechaVencimiento"), "fechaVencimiento")
        if alta and venc and venc < alta:
            errors.append("La fecha de vencimiento no puede ser anterior a la fecha de alta.")
    return errors


def _check_identificador(s: "Session", identificador: str, exclude_id: int | None = None) -> None:
    q = s.query(Credencial.id).filter(Credencial.identificador == identificador)
    if exclude_id is not None:
        q = q.filter(Credencial.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Ya existe una credencial con el identificador '{identificador}'")


def create_credencial(s: "Session", payload: dict, user: "Usuario | None", *, today: date | None = None) -> Credencial:
    """
    Issue a credential by hand. Dates default to the Persona's license window,
    or to a one-year window starting today.
    """
    raise_if_errors(validate_credencial_payload(payload, creating=True))
    persona_id = parse_int(payload.get("idPersona"), "idPersona")
    persona = s.get(Persona, persona_id) if persona_id is not None else None
    if not persona or persona.tipo not in TIPOS_CON_CREDENCIAL:
        raise ValidationError("Solo jugadores o entrenadores pueden tener credenciales")

    today = today or date.today()
    alta = parse_date(payload.get("fechaAlta"), "fechaAlta") or persona.fecha_licencia or today
    vencimiento = parse_date(payload.get("fechaVencimiento"), "fechaVencimiento") or add_one_year(alta)
    identificador = clean_str(payload.get("identificador")) or credencial_identificador(persona.id, alta.year)
    _check_identificador(s, identificador)

    cred = Credencial(
        persona=persona,
        identificador=identificador,
        fecha_alta=alta,
        fecha_vencimiento=vencimiento,
        estado=clean_str(payload.get("estado")) or ESTADO_ACTIVO,
    )
    s.add(cred)
    s.flush()
    record_event(
        s,
        actor=user,
        action="credencial.create",
        entity_type="Credencial",
        entity_id=str(cred.id),
        metadata={"persona_id": persona.id, "identificador": identificador},
    )
    return cred


def update_credencial(s: "Session", cred: Credencial, payload: dict, user: "Usuario | None") -> None:
    raise_if_errors(validate_credencial_payload(payload, creating=False))
    changes = {}

    identificador = clean_str(payload.get("identificador"))
    if identificador and identificador != cred.identificador:
        _check_identificador(s, identificador, exclude_id=cred.id)
        changes["identificador"] = {"old": cred.identificador, "new": identificador}
        cred.identificador = identificador

    for key, attr in (("fechaAlta", "fecha_alta"), ("fechaVencimiento", "fecha_vencimiento")):
        val = parse_date(payload.get(key), key)
        if val and val != getattr(cred, attr):
            changes[attr] = {"old": str(getattr(cred, attr)), "new": str(val)}
            setattr(cred, attr, val)
    if cred.fecha_vencimiento < cred.fecha_alta:
        raise ValidationError("La fecha de vencimiento no puede ser anterior a la fecha de alta.")

    estado = clean_str(payload.get("estado"))
    if estado and estado != cred.estado:
        changes["estado"] = {"old": cred.estado, "new": estado}
        cred.estado = estado

    record_event(
        s,
        actor=user,
        action="credencial.edit",
        entity_type="Credencial",
        entity_id=str(cred.id),
        metadata={"changes": changes},
    )


def desactivar_credencial(s: "Session", cred: Credencial, user: "Usuario | None") -> None:
    """Soft delete: credentials are kept for history and only marked INACTIVO."""
    old = cred.estado
    cred.estado = ESTADO_INACTIVO
    record_event(
        s,
        actor=user,
        action="credencial.deactivate",
        entity_type="Credencial",
        entity_id=str(cred.id),
        metadata={"old": old, "identificador": cred.identificador},
    )
