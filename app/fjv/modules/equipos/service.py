from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func

from app.fjv.audit import record_event
from app.fjv.errors import ConflictError, ValidationError, raise_if_errors
from app.fjv.modules.categorias.models import Categoria
from app.fjv.modules.clubs.models import Club
from app.fjv.modules.equipos.models import Equipo
from app.fjv.utils import clean_str, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.fjv.models import Usuario


def validate_equipo_payload(payload: dict, *, creating: bool) -> list[str]:
    errors = []
    if (creating or "nombre" in payload) and not clean_str(payload.get("nombre")):
        errors.append("El nombre del equipo es obligatorio")
    if creating and payload.get("idClub") in (None, ""):
        errors.append("El club es obligatorio")
    if creating and payload.get("idCategoria") in (None, ""):
        errors.append("La categoría es obligatoria")
    return errors


def _require_club(s: "Session", club_id) -> Club:
    club = s.get(Club, parse_int(club_id, "idClub"))
    if not club:
        raise ValidationError("El club especificado no existe")
    return club


def _require_categoria(s: "Session", categoria_id) -> Categoria:
    categoria = s.get(Categoria, parse_int(categoria_id, "idCategoria"))
    if not categoria:
        raise ValidationError("La categoría especificada no existe")
    return categoria


def _check_duplicate(s: "Session", nombre: str, club_id: int, categoria_id: int, exclude_id: int | None = None) -> None:
    q = s.query(Equipo.id).filter(
        func.lower(Equipo.nombre) == nombre.lower(),
        Equipo.club_id == club_id,
        Equipo.categoria_id == categoria_id,
    )
    if exclude_id is not None:
        q = q.filter(Equipo.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Ya existe un equipo '{nombre}' en ese club y categoría")


def create_equipo(s: "Session", payload: dict, user: "Usuario | None") -> Equipo:
    raise_if_errors(validate_equipo_payload(payload, creating=True))
    club = _require_club(s, payload.get("idClub"))
    categoria = _require_categoria(s, payload.get("idCategoria"))
    nombre = clean_str(payload.get("nombre")) or ""
    _check_duplicate(s, nombre, club.id, categoria.id)

    equipo = Equipo(
        nombre=nombre,
        club=club,
        categoria=categoria,
        nombre_delegado=clean_str(payload.get("nombreDelegado")),
        telefono_delegado=clean_str(payload.get("telefonoDelegado")),
    )
    s.add(equipo)
    s.flush()
    record_event(
        s,
        actor=user,
        action="equipo.create",
        entity_type="Equipo",
        entity_id=str(equipo.id),
        metadata={"nombre": equipo.nombre, "club_id": club.id, "categoria_id": categoria.id},
    )
    return equipo


def update_equipo(s: "Session", equipo: Equipo, payload: dict, user: "Usuario | None") -> Equipo:
    raise_if_errors(validate_equipo_payload(payload, creating=False))
    changes = {}

    club = _require_club(s, payload.get("idClub")) if payload.get("idClub") not in (None, "") else equipo.club
    categoria = (
        _require_categoria(s, payload.get("idCategoria"))
        if payload.get("idCategoria") not in (None, "")
        else equipo.categoria
    )
    nombre = clean_str(payload.get("nombre")) or equipo.nombre
    if (nombre, club.id, categoria.id) != (equipo.nombre, equipo.club_id, equipo.categoria_id):
        _check_duplicate(s, nombre, club.id, categoria.id, exclude_id=equipo.id)

    if nombre != equipo.nombre:
        changes["nombre"] = {"old": equipo.nombre, "new": nombre}
        equipo.nombre = nombre
    if club.id != equipo.club_id:
        changes["club_id"] = {"old": equipo.club_id, "new": club.id}
        equipo.club = club
    if categoria.id != equipo.categoria_id:
        changes["categoria_id"] = {"old": equipo.categoria_id, "new": categoria.id}
        equipo.categoria = categoria
    for key, attr in (("nombreDelegado", "nombre_delegado"), ("telefonoDelegado", "telefono_delegado")):
        if key in payload:
            val = clean_str(payload.get(key))
            if val != getattr(equipo, attr):
                changes[attr] = {"old": getattr(equipo, attr), "new": val}
                setattr(equipo, attr, val)

    record_event(
        s,
        actor=user,
        action="equipo.edit",
        entity_type="Equipo",
        entity_id=str(equipo.id),
        metadata={"nombre": equipo.nombre, "changes": changes},
    )
    return equipo


def delete_equipo(s: "Session", equipo: Equipo, user: "Usuario | None") -> None:
    """Delete a team; its cobros stay with the club (equipo_id is set to NULL)."""
    from app.fjv.modules.cobros.models import Cobro

    s.query(Cobro).filter(Cobro.equipo_id == equipo.id).update({Cobro.equipo_id: None}, synchronize_session=False)
    record_event(
        s,
        actor=user,
        action="equipo.delete",
        entity_type="Equipo",
        entity_id=str(equipo.id),
        metadata={"nombre": equipo.nombre},
    )
    s.delete(equipo)


def query_equipos(s: "Session", filters: dict) -> "Query":
    q = s.query(Equipo)
    nombre = clean_str(filters.get("nombre"))
    if nombre:
        q = q.filter(Equipo.nombre.ilike(f"%{nombre}%"))
    club_id = parse_int(filters.get("idClub"), "idClub")
    if club_id is not None:
        q = q.filter(Equipo.club_id == club_id)
    categoria_id = parse_int(filters.get("idCategoria"), "idCategoria")
    if categoria_id is not None:
        q = q.filter(Equipo.categoria_id == categoria_id)
    delegado = clean_str(filters.get("nombreDelegado"))
    if delegado:
        q = q.filter(Equipo.nombre_delegado.ilike(f"%{delegado}%"))
    return q.order_by(Equipo.nombre.asc())
