"""
Persona service layer: validation, CRUD, search filters and summary counts.
License renewal and the expiry sweep live in licencias.py.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.fjv.audit import record_event
from app.fjv.constants import (
    ESTADO_ACTIVO,
    ESTADO_INACTIVO,
    ESTADO_SUSPENDIDO,
    ESTADO_VENCIDO,
    ESTADOS_LICENCIA,
)
from app.fjv.errors import ConflictError, ValidationError, raise_if_errors
from app.fjv.modules.clubs.models import Club
from app.fjv.modules.personas.licencias import (
    aplicar_ventana_licencia,
    credencial_actual,
    estado_para,
    sync_credencial,
)
from app.fjv.modules.personas.models import Persona
from app.fjv.utils import clean_str, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.fjv.imagehost import HostedImage
    from app.fjv.models import Usuario
    from app.fjv.uploads import UploadedImage


def validate_persona_payload(payload: dict, *, creating: bool) -> list[str]:
    """Validate persona creation/update payload. Returns list of errors."""
    errors = []
    required = (
        ("nombreApellido", "El nombre y apellido es obligatorio."),
        ("dni", "El DNI es obligatorio."),
        ("fechaNacimiento", "La fecha de nacimiento es obligatoria."),
    )
    for key, msg in required:
        if (creating or key in payload) and not clean_str(payload.get(key)):
            errors.append(msg)

    for key in ("fechaNacimiento", "fechaLicencia"):
        try:
            parse_date(payload.get(key), key)
        except ValidationError as e:
            errors.append(e.msg)

    nacimiento = None
    try:
        nacimiento = parse_date(payload.get("fechaNacimiento"), "fechaNacimiento")
    except ValidationError:
        pass
    if nacimiento and nacimiento > date.today():
        errors.append("La fecha de nacimiento no puede ser futura.")

    estado = clean_str(payload.get("estadoLicencia"))
    if estado and estado not in ESTADOS_LICENCIA:
        errors.append(f"Estado de licencia inválido. Debe ser uno de: {', '.join(ESTADOS_LICENCIA)}")
    return errors


def _check_unique(s: "Session", *, dni: str | None, licencia_feva: str | None, exclude_id: int | None = None) -> None:
    def taken(criterion) -> bool:
        q = s.query(Persona.id).filter(criterion)
        if exclude_id is not None:
            q = q.filter(Persona.id != exclude_id)
        return q.first() is not None

    if dni and taken(Persona.dni == dni):
        raise ConflictError(f"Ya existe una persona con el DNI '{dni}'")
    if licencia_feva and taken(Persona.licencia_feva == licencia_feva):
        raise ConflictError(f"Ya existe una persona con la licencia FEVA '{licencia_feva}'")


def _resolve_club_id(s: "Session", value) -> int | None:
    club_id = parse_int(value, "idClub")
    if club_id is None:
        return None
    if not s.get(Club, club_id):
        raise ValidationError("El club especificado no existe.")
    return club_id


def _apply_foto(persona: Persona, hosted: "HostedImage", upload: "UploadedImage") -> None:
    persona.foto_perfil_url = hosted.url
    persona.foto_perfil_delete_url = hosted.delete_url
    persona.foto_perfil_tipo = upload.content_type
    persona.foto_perfil_tamano = upload.size


def create_persona(
    s: "Session",
    payload: dict,
    user: "Usuario | None",
    *,
    foto: "tuple[HostedImage, UploadedImage] | None" = None,
    today: date | None = None,
) -> Persona:
    """
    Register a Persona. The license starts at fechaLicencia (default today) and its
    credential is created in the same transaction.
    """
    raise_if_errors(validate_persona_payload(payload, creating=True))
    today = today or date.today()

    dni = clean_str(payload.get("dni")) or ""
    licencia_feva = clean_str(payload.get("licenciaFEVA"))
    _check_unique(s, dni=dni, licencia_feva=licencia_feva)

    persona = Persona(
        nombre_apellido=clean_str(payload.get("nombreApellido")) or "",
        dni=dni,
        fecha_nacimiento=parse_date(payload.get("fechaNacimiento"), "fechaNacimiento"),
        club_id=_resolve_club_id(s, payload.get("idClub")),
        tipo=clean_str(payload.get("tipo")),
        categoria=clean_str(payload.get("categoria")),
        categoria_nivel=clean_str(payload.get("categoriaNivel")),
        licencia_feva=licencia_feva,
    )
    aplicar_ventana_licencia(persona, parse_date(payload.get("fechaLicencia"), "fechaLicencia") or today, today)
    estado = clean_str(payload.get("estadoLicencia"))
    if estado in (ESTADO_SUSPENDIDO, ESTADO_INACTIVO):
        persona.estado_licencia = estado
    if foto is not None:
        _apply_foto(persona, *foto)

    s.add(persona)
    s.flush()
    cred = sync_credencial(s, persona)

    record_event(
        s,
        actor=user,
        action="persona.create",
        entity_type="Persona",
        entity_id=str(persona.id),
        metadata={"dni": persona.dni, "nombre": persona.nombre_apellido, "credencial": cred.identificador},
    )
    return persona


def _check_estado_manual(persona: Persona, estado: str, today: date | None) -> None:
    """ACTIVO and VENCIDO follow the license window; only holds can be set by hand."""
    if estado not in (ESTADO_ACTIVO, ESTADO_VENCIDO) or persona.fecha_licencia_baja is None:
        return
    if estado == estado_para(persona.fecha_licencia_baja, today):
        return
    if estado == ESTADO_ACTIVO:
        raise ValidationError("La licencia está vencida. Renueve la licencia para activarla.")
    raise ValidationError(
        f"La licencia está vigente hasta {persona.fecha_licencia_baja.isoformat()} "
        "y no puede marcarse como VENCIDO."
    )


def update_persona(
    s: "Session",
    persona: Persona,
    payload: dict,
    user: "Usuario | None",
    *,
    foto: "tuple[HostedImage, UploadedImage] | None" = None,
    today: date | None = None,
) -> str | None:
    """
    Update a Persona; only keys present in the payload are touched.
    A new fechaLicencia recomputes the window and syncs the credential in the same transaction.
    Returns the image-host delete handle of a replaced photo (to be removed after commit).
    """
    raise_if_errors(validate_persona_payload(payload, creating=False))
    changes = {}

    dni = clean_str(payload.get("dni")) if "dni" in payload else None
    licencia_feva = clean_str(payload.get("licenciaFEVA")) if "licenciaFEVA" in payload else None
    _check_unique(
        s,
        dni=dni if dni and dni != persona.dni else None,
        licencia_feva=licencia_feva if licencia_feva and licencia_feva != persona.licencia_feva else None,
        exclude_id=persona.id,
    )

    text_fields = {
        "nombreApellido": "nombre_apellido",
        "dni": "dni",
        "tipo": "tipo",
        "categoria": "categoria",
        "categoriaNivel": "categoria_nivel",
        "licenciaFEVA": "licencia_feva",
    }
    for key, attr in text_fields.items():
        if key not in payload:
            continue
        val = clean_str(payload.get(key))
        if attr in ("nombre_apellido", "dni") and not val:
            continue
        if val != getattr(persona, attr):
            changes[attr] = {"old": getattr(persona, attr), "new": val}
            setattr(persona, attr, val)

    if "fechaNacimiento" in payload:
        nacimiento = parse_date(payload.get("fechaNacimiento"), "fechaNacimiento")
        if nacimiento and nacimiento != persona.fecha_nacimiento:
            changes["fecha_nacimiento"] = {"old": str(persona.fecha_nacimiento), "new": str(nacimiento)}
            persona.fecha_nacimiento = nacimiento

    if "idClub" in payload:
        club_id = _resolve_club_id(s, payload.get("idClub"))
        if club_id != persona.club_id:
            changes["club_id"] = {"old": persona.club_id, "new": club_id}
            persona.club_id = club_id
            persona.club = s.get(Club, club_id) if club_id else None

    licencia_cambio = False
    if "fechaLicencia" in payload:
        inicio = parse_date(payload.get("fechaLicencia"), "fechaLicencia")
        if inicio and inicio != persona.fecha_licencia:
            changes["fecha_licencia"] = {"old": str(persona.fecha_licencia), "new": str(inicio)}
            aplicar_ventana_licencia(persona, inicio, today)
            licencia_cambio = True

    estado = clean_str(payload.get("estadoLicencia"))
    if estado:
        _check_estado_manual(persona, estado, today)
    if estado and estado != persona.estado_licencia:
        changes["estado_licencia"] = {"old": persona.estado_licencia, "new": estado}
        persona.estado_licencia = estado
        licencia_cambio = True

    old_delete_url = None
    if foto is not None:
        old_delete_url = persona.foto_perfil_delete_url
        _apply_foto(persona, *foto)
        changes["foto_perfil"] = "replaced"

    if licencia_cambio and persona.fecha_licencia is not None:
        sync_credencial(s, persona)
    elif licencia_cambio:
        cred = credencial_actual(s, persona.id)
        if cred is not None:
            cred.estado = persona.estado_licencia

    record_event(
        s,
        actor=user,
        action="persona.edit",
        entity_type="Persona",
        entity_id=str(persona.id),
        metadata={"dni": persona.dni, "changes": changes},
    )
    return old_delete_url


def delete_persona(s: "Session", persona: Persona, user: "Usuario | None") -> str | None:
    """Delete a Persona and (by cascade) its credentials. Returns the photo delete handle, if any."""
    delete_url = persona.foto_perfil_delete_url
    record_event(
        s,
        actor=user,
        action="persona.delete",
        entity_type="Persona",
        entity_id=str(persona.id),
        metadata={"dni": persona.dni, "nombre": persona.nombre_apellido},
    )
    s.delete(persona)
    return delete_url


def clear_foto(s: "Session", persona: Persona, user: "Usuario | None") -> str | None:
    delete_url = persona.foto_perfil_delete_url
    persona.foto_perfil_url = None
    persona.foto_perfil_delete_url = None
    persona.foto_perfil_tipo = None
    persona.foto_perfil_tamano = None
    record_event(s, actor=user, action="persona.foto_delete", entity_type="Persona", entity_id=str(persona.id))
    return delete_url


def query_personas(s: "Session", filters: dict) -> "Query":
    """Search filters used by /filtro/buscar: partial text matches, exact ids, date ranges."""
    q = s.query(Persona)
    for key, col in (
        ("nombreApellido", Persona.nombre_apellido),
        ("dni", Persona.dni),
        ("tipo", Persona.tipo),
        ("categoria", Persona.categoria),
        ("categoriaNivel", Persona.categoria_nivel),
        ("licenciaFEVA", Persona.licencia_feva),
    ):
        val = clean_str(filters.get(key))
        if val:
            q = q.filter(col.ilike(f"%{val}%"))

    club_id = parse_int(filters.get("idClub"), "idClub")
    if club_id is not None:
        q = q.filter(Persona.club_id == club_id)
    estado = clean_str(filters.get("estadoLicencia"))
    if estado:
        q = q.filter(Persona.estado_licencia == estado)

    for prefix, col in (
        ("fechaNacimiento", Persona.fecha_nacimiento),
        ("fechaLicencia", Persona.fecha_licencia),
        ("fechaLicenciaBaja", Persona.fecha_licencia_baja),
    ):
        desde = parse_date(filters.get(f"{prefix}Desde"), f"{prefix}Desde")
        if desde:
            q = q.filter(col >= desde)
        hasta = parse_date(filters.get(f"{prefix}Hasta"), f"{prefix}Hasta")
        if hasta:
            q = q.filter(col <= hasta)
    return q.order_by(Persona.nombre_apellido.asc())


# ---------- Summaries ----------
def resumen(s: "Session", *, today: date | None = None, dias_por_vencer: int = 30) -> dict:
    today = today or date.today()
    por_estado = dict(s.query(Persona.estado_licencia, func.count(Persona.id)).group_by(Persona.estado_licencia).all())
    por_vencer = (
        s.query(func.count(Persona.id))
        .filter(
            Persona.estado_licencia == ESTADO_ACTIVO,
            Persona.fecha_licencia_baja >= today,
            Persona.fecha_licencia_baja <= today + timedelta(days=dias_por_vencer),
        )
        .scalar()
        or 0
    )
    return {
        "total": sum(por_estado.values()),
        "activos": por_estado.get(ESTADO_ACTIVO, 0),
        "inactivos": por_estado.get(ESTADO_INACTIVO, 0),
        "suspendidos": por_estado.get(ESTADO_SUSPENDIDO, 0),
        "vencidos": por_estado.get(ESTADO_VENCIDO, 0),
        "porVencer": por_vencer,
    }


def cantidad_por_tipo(s: "Session") -> list[dict]:
    rows = (
        s.query(Persona.tipo, func.count(Persona.id))
        .group_by(Persona.tipo)
        .order_by(func.count(Persona.id).desc())
        .all()
    )
    return [{"tipo": tipo or "Sin tipo", "cantidad": n} for tipo, n in rows]


def cantidad_por_club(s: "Session") -> list[dict]:
    rows = (
        s.query(Club.id, Club.nombre, func.count(Persona.id))
        .outerjoin(Persona, Persona.club_id == Club.id)
        .group_by(Club.id, Club.nombre)
        .order_by(Club.nombre.asc())
        .all()
    )
    out = [{"idClub": cid, "nombre": nombre, "cantidad": n} for cid, nombre, n in rows]
    sin_club = s.query(func.count(Persona.id)).filter(Persona.club_id.is_(None)).scalar() or 0
    if sin_club:
        out.append({"idClub": None, "nombre": "Sin club", "cantidad": sin_club})
    return out
