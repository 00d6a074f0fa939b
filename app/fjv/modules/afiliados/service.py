from __future__ import annotations

import math
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.fjv.constants import (
    ESTADO_ACTIVO,
    ESTADO_INACTIVO,
    ESTADO_SUSPENDIDO,
    ESTADO_VENCIDO,
    ESTADOS_LICENCIA,
)
from app.fjv.errors import ValidationError
from app.fjv.modules.clubs.models import Club
from app.fjv.modules.personas.models import Persona
from app.fjv.utils import clean_str, page_params, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session

SORTABLE = {
    "nombreApellido": Persona.nombre_apellido,
    "apellidoNombre": Persona.nombre_apellido,
    "dni": Persona.dni,
    "fechaNacimiento": Persona.fecha_nacimiento,
    "fechaLicencia": Persona.fecha_licencia,
    "fechaLicenciaBaja": Persona.fecha_licencia_baja,
    "estadoLicencia": Persona.estado_licencia,
    "tipo": Persona.tipo,
    "categoria": Persona.categoria,
}


def filtered_query(s: "Session", filters) -> "Query":
    q = s.query(Persona)
    texto = clean_str(filters.get("apellidoNombre"))
    if texto:
        q = q.filter(Persona.nombre_apellido.ilike(f"%{texto}%"))
    dni = clean_str(filters.get("dni"))
    if dni:
        q = q.filter(Persona.dni.ilike(f"%{dni}%"))
    for key, col in (
        ("estadoLicencia", Persona.estado_licencia),
        ("tipo", Persona.tipo),
        ("categoria", Persona.categoria),
        ("categoriaNivel", Persona.categoria_nivel),
    ):
        val = clean_str(filters.get(key))
        if val:
            q = q.filter(col == val)
    club_id = parse_int(filters.get("idClub"), "idClub")
    if club_id is not None:
        q = q.filter(Persona.club_id == club_id)
    desde = parse_date(filters.get("fechaLicenciaDesde"), "fechaLicenciaDesde")
    if desde:
        q = q.filter(Persona.fecha_licencia >= desde)
    hasta = parse_date(filters.get("fechaLicenciaHasta"), "fechaLicenciaHasta")
    if hasta:
        q = q.filter(Persona.fecha_licencia <= hasta)
    return q


def _ordered(q: "Query", filters) -> "Query":
    sort_by = clean_str(filters.get("sortBy")) or "nombreApellido"
    col = SORTABLE.get(sort_by)
    if col is None:
        raise ValidationError(f"Campo de ordenamiento inválido: '{sort_by}'")
    sort_order = (clean_str(filters.get("sortOrder")) or "asc").lower()
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sortOrder debe ser 'asc' o 'desc'")
    return q.order_by(col.desc() if sort_order == "desc" else col.asc(), Persona.id.asc())


def estadisticas(q: "Query") -> dict:
    counts = dict(
        q.with_entities(Persona.estado_licencia, func.count(Persona.id))
        .group_by(Persona.estado_licencia)
        .order_by(None)
        .all()
    )
    return {
        "total": sum(counts.values()),
        "activos": counts.get(ESTADO_ACTIVO, 0),
        "inactivos": counts.get(ESTADO_INACTIVO, 0),
        "vencidos": counts.get(ESTADO_VENCIDO, 0),
        "suspendidos": counts.get(ESTADO_SUSPENDIDO, 0),
    }


def buscar_afiliados(s: "Session", filters) -> dict:
    """Paginated advanced filter over Personas, with per-state counts for the same filter."""
    page, limit = page_params(filters, default_limit=50, max_limit=500)
    q = filtered_query(s, filters)
    stats = estadisticas(q)
    total = stats["total"]
    rows = _ordered(q, filters).offset((page - 1) * limit).limit(limit).all()
    return {
        "data": [p.to_dict(include_credencial=False) for p in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if total else 0,
        },
        "estadisticas": stats,
    }


def afiliados_para_exportar(s: "Session", filters) -> list[Persona]:
    return _ordered(filtered_query(s, filters), filters).all()


def _distinct(s: "Session", col) -> list[str]:
    return [v for (v,) in s.query(col).filter(col.isnot(None)).distinct().order_by(col.asc()).all()]


def opciones_filtros(s: "Session") -> dict:
    clubes = s.query(Club.id, Club.nombre).order_by(Club.nombre.asc()).all()
    return {
        "clubes": [{"idClub": cid, "nombre": nombre} for cid, nombre in clubes],
        "estadosLicencia": list(ESTADOS_LICENCIA),
        "tipos": _distinct(s, Persona.tipo),
        "categorias": _distinct(s, Persona.categoria),
        "categoriasNivel": _distinct(s, Persona.categoria_nivel),
    }
