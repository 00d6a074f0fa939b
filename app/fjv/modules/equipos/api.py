from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.fjv.db import db_session
from app.fjv.modules.equipos.models import Equipo
from app.fjv.modules.equipos.service import create_equipo, delete_equipo, query_equipos, update_equipo
from app.fjv.rbac import current_user, require_admin

bp = Blueprint("equipos", __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_equipo_or_404(s, equipo_id: int) -> Equipo:
    equipo = s.get(Equipo, equipo_id)
    if not equipo:
        abort(404)
    return equipo


@bp.get("/filter")
def equipos_filter():
    s = db_session()
    return jsonify([e.to_dict() for e in query_equipos(s, request.args).all()])


@bp.get("/")
def equipos_list():
    s = db_session()
    return jsonify([e.to_dict() for e in s.query(Equipo).order_by(Equipo.nombre.asc()).all()])


@bp.get("/<int:equipo_id>")
def equipos_detail(equipo_id: int):
    s = db_session()
    return jsonify(_get_equipo_or_404(s, equipo_id).to_dict())


@bp.post("/")
@require_admin
def equipos_create():
    s = db_session()
    equipo = create_equipo(s, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Equipo creado exitosamente", "equipo": equipo.to_dict()}), 201


@bp.put("/<int:equipo_id>")
@require_admin
def equipos_update(equipo_id: int):
    s = db_session()
    equipo = _get_equipo_or_404(s, equipo_id)
    update_equipo(s, equipo, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Equipo actualizado exitosamente", "equipo": equipo.to_dict()})


@bp.delete("/<int:equipo_id>")
@require_admin
def equipos_delete(equipo_id: int):
    s = db_session()
    equipo = _get_equipo_or_404(s, equipo_id)
    delete_equipo(s, equipo, current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Equipo eliminado exitosamente"})
