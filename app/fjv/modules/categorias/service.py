from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func

from app.fjv.audit import record_event
from app.fjv.errors import ConflictError, ValidationError, raise_if_errors
from app.fjv.modules.categorias.models import Categoria
from app.fjv.utils import clean_str, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.fjv.models import Usuario


def validate_categoria_payload(payload: dict, *, creating: bool, current: Categoria | None = None) -> list[str]:
    errors = []
    if (creating or "nombre" in payload) and not clean_str(payload.get("nombre")):
        errors.append("El nombre de la categoría es obligatorio")
    try:
        minima = parse_int(payload.get("edadMinima"), "edadMinima") if "edadMinima" in payload else (current.edad_minima if current else None)
        maxima = parse_int(payload.get("edadMaxima"), "edadMaxima") if "edadMaxima" in payload else (current.edad_maxima if current else None)
    except ValidationError as e:
        errors.append(e.msg)
        return errors
    if (minima is not None and minima < 0) or (maxima is not None and maxima < 0):
        errors.append("Las edades no pueden ser negativas")
    if minima is not None and maxima is not None and minima > maxima:
        errors.append("La edad mínima no puede ser mayor que la edad máxima")
    return errors


def _name_taken(s: "Session", nombre: str, exclude_id: int | None = None) -> bool:
    q = s.query(Categoria.id).filter(func.lower(Categoria.nombre) == nombre.lower())
    if exclude_id is not None:
        q = q.filter(Categoria.id != exclude_id)
    return q.first() is not None


def create_categoria(s: "Session", payload: dict, user: "Usuario | None") -> Categoria:
    raise_if_errors(validate_categoria_payload(payload, creating=True))
    nombre = clean_str(payload.get("nombre")) or ""
    if _name_taken(s, nombre):
        raise ConflictError(f"Ya existe una categoría con el nombre '{nombre}'")
    categoria = Categoria(
        nombre=nombre,
        tipo=clean_str(payload.get("tipo")),
        edad_minima=parse_int(payload.get("edadMinima"), "edadMinima"),
        edad_maxima=parse_int(payload.get("edadMaxima"), "edadMaxima"),
    )
    s.add(categoria)
    s.flush()
    record_event(
        s,
        actor=user,
        action="categoria.create",
        entity_type="Categoria",
        entity_id=str(categoria.id),
        metadata={"nombre": categoria.nombre},
    )
    return categoria


def update_categoria(s: "Session", categoria: Categoria, payload: dict, user: "Usuario | None") -> Categoria:
    raise_if_errors(validate_categoria_payload(payload, creating=False, current=categoria))
    changes = {}
    if "nombre" in payload:
        nombre = clean_str(payload.get("nombre")) or ""
        if nombre != categoria.nombre:
            if _name_taken(s, nombre, exclude_id=categoria.id):
                raise ConflictError(f"Ya existe una categoría con el nombre '{nombre}'")
            changes["nombre"] = {"old": categoria.nombre, "new": nombre}
            categoria.nombre = nombre
    if "tipo" in payload:
        tipo = clean_str(payload.get("tipo"))
        if tipo != categoria.tipo:
            changes["tipo"] = {"old": categoria.tipo, "new": tipo}
            categoria.tipo = tipo
    for key, attr in (("edadMinima", "edad_minima"), ("edadMaxima", "edad_maxima")):
        if key in payload:
            val = parse_int(payload.get(key), key)
            if val != getattr(categoria, attr):
                changes[attr] = {"old": getattr(categoria, attr), "new": val}
                setattr(categoria, attr, val)
    record_event(
        s,
        actor=user,
        action="categoria.edit",
        entity_type="Categoria",
        entity_id=str(categoria.id),
        metadata={"nombre": categoria.nombre, "changes": changes},
    )
    return categoria


def delete_categoria(s: "Session", categoria: Categoria, user: "Usuario | None") -> None:
    from app.fjv.modules.equipos.models import Equipo

    equipos = s.query(func.count(Equipo.id)).filter(Equipo.categoria_id == categoria.id).scalar() or 0
    if equipos:
        raise ValidationError(
            f"No se puede eliminar la categoría porque tiene {equipos} equipos asociados. "
            "Reasigne los equipos a otra categoría primero."
        )
    record_event(
        s,
        actor=user,
        action="categoria.delete",
        entity_type="Categoria",
        entity_id=str(categoria.id),
        metadata={"nombre": categoria.nombre},
    )
    s.delete(categoria)


def query_categorias(s: "Session", filters: dict) -> "Query":
    q = s.query(Categoria)
    nombre = clean_str(filters.get("nombre"))
    if nombre:
        q = q.filter(Categoria.nombre.ilike(f"%{nombre}%"))
    tipo = clean_str(filters.get("tipo"))
    if tipo:
        q = q.filter(Categoria.tipo == tipo)
    minima = parse_int(filters.get("edadMinima"), "edadMinima")
    if minima is not None:
        q = q.filter(Categoria.edad_minima >= minima)
    maxima = parse_int(filters.get("edadMaxima"), "edadMaxima")
    if maxima is not None:
        q = q.filter(Categoria.edad_maxima <= maxima)
    return q.order_by(Categoria.nombre.asc())
