from __future__ import annotations

import re
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.fjv.audit import record_event
from app.fjv.errors import ConflictError, ValidationError, raise_if_errors
from app.fjv.modules.clubs.models import Club
from app.fjv.utils import clean_str, parse_date

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.fjv.models import Usuario


VALID_ESTADOS = ("Activo", "Inactivo", "Suspendido")
CUIT_RE = re.compile(r"^(\d{2}-\d{8}-\d|\d{11})$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_cuit(value: str) -> bool:
    return bool(CUIT_RE.match(value))


def validate_club_payload(payload: dict, *, creating: bool) -> list[str]:
    """Validate club creation/update payload. Returns list of errors."""
    errors = []

    def present(key: str) -> bool:
        return creating or key in payload

    if present("nombre") and not clean_str(payload.get("nombre")):
        errors.append("El nombre del club es obligatorio")
    if creating and not clean_str(payload.get("direccion")):
        errors.append("La dirección del club es obligatoria")
    email = clean_str(payload.get("email"))
    if present("email") and (creating or email) and not (email and EMAIL_RE.match(email)):
        errors.append("El email del club debe ser válido")
    cuit = clean_str(payload.get("cuit"))
    if present("cuit") and (creating or cuit) and not (cuit and is_valid_cuit(cuit)):
        errors.append("El CUIT del club debe tener un formato válido (XX-XXXXXXXX-X)")
    if creating and not clean_str(payload.get("fechaAfiliacion")):
        errors.append("La fecha de afiliación es obligatoria")
    estado = clean_str(payload.get("estadoAfiliacion"))
    if present("estadoAfiliacion") and (creating or estado) and estado not in VALID_ESTADOS:
        errors.append("El estado de afiliación debe ser: Activo, Inactivo o Suspendido")
    return errors


def _check_unique(s: "Session", *, nombre: str | None, email: str | None, cuit: str | None, exclude_id: int | None = None) -> None:
    def taken(criterion) -> bool:
        q = s.query(Club.id).filter(criterion)
        if exclude_id is not None:
            q = q.filter(Club.id != exclude_id)
        return q.first() is not None

    if nombre and taken(func.lower(Club.nombre) == nombre.lower()):
        raise ConflictError(f"Ya existe un club con el nombre '{nombre}'")
    if cuit and taken(Club.cuit == cuit):
        raise ConflictError(f"Ya existe un club con el CUIT '{cuit}'")
    if email and taken(func.lower(Club.email) == email.lower()):
        raise ConflictError(f"Ya existe un club con el email '{email}'")


def create_club(s: "Session", payload: dict, user: "Usuario | None") -> Club:
    """Create a new club."""
    raise_if_errors(validate_club_payload(payload, creating=True))
    nombre = clean_str(payload.get("nombre")) or ""
    email = (clean_str(payload.get("email")) or "").lower() or None
    cuit = clean_str(payload.get("cuit"))
    _check_unique(s, nombre=nombre, email=email, cuit=cuit)

    club = Club(
        nombre=nombre,
        direccion=clean_str(payload.get("direccion")),
        telefono=clean_str(payload.get("telefono")),
        email=email,
        cuit=cuit,
        fecha_afiliacion=parse_date(payload.get("fechaAfiliacion"), "fechaAfiliacion"),
        estado_afiliacion=clean_str(payload.get("estadoAfiliacion")) or "Activo",
    )
    s.add(club)
    s.flush()
    record_event(
        s,
        actor=user,
        action="club.create",
        entity_type="Club",
        entity_id=str(club.id),
        metadata={"nombre": club.nombre, "cuit": club.cuit},
    )
    return club


def update_club(s: "Session", club: Club, payload: dict, user: "Usuario | None") -> Club:
    """Update an existing club; only keys present in the payload are touched."""
    raise_if_errors(validate_club_payload(payload, creating=False))
    changes = {}

    nombre = clean_str(payload.get("nombre")) if "nombre" in payload else None
    email = None
    if "email" in payload:
        email = (clean_str(payload.get("email")) or "").lower() or None
    cuit = clean_str(payload.get("cuit")) if "cuit" in payload else None
    _check_unique(
        s,
        nombre=nombre if nombre and nombre.lower() != club.nombre.lower() else None,
        email=email if email and email != (club.email or "") else None,
        cuit=cuit if cuit and cuit != club.cuit else None,
        exclude_id=club.id,
    )

    simple = {
        "nombre": ("nombre", nombre),
        "direccion": ("direccion", clean_str(payload.get("direccion"))),
        "telefono": ("telefono", clean_str(payload.get("telefono"))),
        "email": ("email", email),
        "cuit": ("cuit", cuit),
        "estadoAfiliacion": ("estado_afiliacion", clean_str(payload.get("estadoAfiliacion"))),
    }
    for key, (attr, new_val) in simple.items():
        if key not in payload:
            continue
        if attr in ("nombre", "estado_afiliacion") and not new_val:
            continue
        if new_val != getattr(club, attr):
            changes[attr] = {"old": getattr(club, attr), "new": new_val}
            setattr(club, attr, new_val)

    if "fechaAfiliacion" in payload:
        new_fecha = parse_date(payload.get("fechaAfiliacion"), "fechaAfiliacion")
        if new_fecha != club.fecha_afiliacion:
            changes["fecha_afiliacion"] = {"old": str(club.fecha_afiliacion), "new": str(new_fecha)}
            club.fecha_afiliacion = new_fecha

    record_event(
        s,
        actor=user,
        action="club.edit",
        entity_type="Club",
        entity_id=str(club.id),
        metadata={"nombre": club.nombre, "changes": changes},
    )
    return club


def delete_club(s: "Session", club: Club, user: "Usuario | None") -> None:
    """Delete a club. Rejected while personas, equipos or cobros still reference it."""
    from app.fjv.modules.cobros.models import Cobro
    from app.fjv.modules.equipos.models import Equipo
    from app.fjv.modules.personas.models import Persona

    personas = s.query(func.count(Persona.id)).filter(Persona.club_id == club.id).scalar() or 0
    if personas:
        raise ValidationError(
            f"No se puede eliminar el club porque tiene {personas} persona(s) asociada(s). "
            "Reasigne las personas antes de eliminar el club."
        )
    equipos = s.query(func.count(Equipo.id)).filter(Equipo.club_id == club.id).scalar() or 0
    if equipos:
        raise ValidationError(
            f"No se puede eliminar el club porque tiene {equipos} equipo(s) asociado(s). "
            "Elimine los equipos antes de eliminar el club."
        )
    cobros = s.query(func.count(Cobro.id)).filter(Cobro.club_id == club.id).scalar() or 0
    if cobros:
        raise ValidationError(f"No se puede eliminar el club porque tiene {cobros} cobro(s) registrado(s).")

    record_event(
        s,
        actor=user,
        action="club.delete",
        entity_type="Club",
        entity_id=str(club.id),
        metadata={"nombre": club.nombre},
    )
    s.delete(club)


def query_clubs(s: "Session", filters: dict) -> "Query":
    q = s.query(Club)
    nombre = clean_str(filters.get("nombre"))
    if nombre:
        q = q.filter(Club.nombre.ilike(f"%{nombre}%"))
    cuit = clean_str(filters.get("cuit"))
    if cuit:
        q = q.filter(Club.cuit.ilike(f"%{cuit}%"))
    estado = clean_str(filters.get("estadoAfiliacion"))
    if estado:
        q = q.filter(Club.estado_afiliacion == estado)
    desde = parse_date(filters.get("fechaAfiliacionDesde"), "fechaAfiliacionDesde")
    if desde:
        q = q.filter(Club.fecha_afiliacion >= desde)
    hasta = parse_date(filters.get("fechaAfiliacionHasta"), "fechaAfiliacionHasta")
    if hasta:
        q = q.filter(Club.fecha_afiliacion <= hasta)
    return q.order_by(Club.nombre.asc())
