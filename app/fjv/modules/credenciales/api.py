from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.fjv.constants import ESTADO_ACTIVO
from app.fjv.db import db_session
from app.fjv.errors import NotFoundError
from app.fjv.modules.credenciales.models import Credencial
from app.fjv.modules.credenciales.service import create_credencial, desactivar_credencial, update_credencial
from app.fjv.rbac import current_user, require_admin, require_auth

bp = Blueprint("credenciales", __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_credencial_or_404(s, credencial_id: int) -> Credencial:
    cred = s.get(Credencial, credencial_id)
    if not cred:
        raise NotFoundError("Credencial no encontrada")
    return cred


@bp.get("/")
@require_auth
def credenciales_list():
    s = db_session()
    creds = (
        s.query(Credencial)
        .filter(Credencial.estado == ESTADO_ACTIVO)
        .order_by(Credencial.fecha_vencimiento.asc(), Credencial.id.asc())
        .all()
    )
    return jsonify([c.to_dict() for c in creds])


@bp.get("/<int:credencial_id>")
@require_auth
def credenciales_detail(credencial_id: int):
    s = db_session()
    return jsonify(_get_credencial_or_404(s, credencial_id).to_dict())


@bp.post("/")
@require_admin
def credenciales_create():
    s = db_session()
    cred = create_credencial(s, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Credencial creada exitosamente", "credencial": cred.to_dict()}), 201


@bp.put("/<int:credencial_id>")
@require_admin
def credenciales_update(credencial_id: int):
    s = db_session()
    cred = _get_credencial_or_404(s, credencial_id)
    update_credencial(s, cred, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Credencial actualizada exitosamente", "credencial": cred.to_dict()})


@bp.delete("/<int:credencial_id>")
@require_admin
def credenciales_delete(credencial_id: int):
    s = db_session()
    cred = _get_credencial_or_404(s, credencial_id)
    desactivar_credencial(s, cred, current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Credencial desactivada correctamente"})
