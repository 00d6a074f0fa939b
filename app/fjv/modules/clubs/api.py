from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.fjv.db import db_session
from app.fjv.modules.clubs.models import Club
from app.fjv.modules.clubs.service import create_club, delete_club, query_clubs, update_club
from app.fjv.rbac import current_user, require_admin

bp = Blueprint("clubs", __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_club_or_404(s, club_id: int) -> Club:
    club = s.get(Club, club_id)
    if not club:
        abort(404)
    return club


@bp.get("/filter")
def clubs_filter():
    s = db_session()
    return jsonify([c.to_dict() for c in query_clubs(s, request.args).all()])


@bp.get("/")
def clubs_list():
    s = db_session()
    return jsonify([c.to_dict() for c in s.query(Club).order_by(Club.nombre.asc()).all()])


@bp.post("/")
@require_admin
def clubs_create():
    s = db_session()
    club = create_club(s, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Club creado exitosamente", "club": club.to_dict()}), 201


@bp.get("/<int:club_id>")
def clubs_detail(club_id: int):
    s = db_session()
    return jsonify(_get_club_or_404(s, club_id).to_dict())


@bp.put("/<int:club_id>")
@require_admin
def clubs_update(club_id: int):
    s = db_session()
    club = _get_club_or_404(s, club_id)
    update_club(s, club, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Club actualizado exitosamente", "club": club.to_dict()})


@bp.delete("/<int:club_id>")
@require_admin
def clubs_delete(club_id: int):
    s = db_session()
    club = _get_club_or_404(s, club_id)
    delete_club(s, club, current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Club eliminado exitosamente"})
