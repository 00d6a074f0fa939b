from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.fjv.db import db_session
from app.fjv.errors import NotFoundError
from app.fjv.modules.clubs.models import Club
from app.fjv.modules.cobros.models import Cobro, Pago
from app.fjv.modules.cobros.service import (
    cambiar_estado,
    create_cobro,
    crear_preferencia,
    delete_cobro,
    query_cobros,
    registrar_pago,
    update_cobro,
    update_pago,
)
from app.fjv.modules.equipos.models import Equipo
from app.fjv.rbac import current_user, require_admin, require_auth

bp = Blueprint("cobros", __name__)
pagos_bp = Blueprint("pagos", __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_cobro_or_404(s, cobro_id: int) -> Cobro:
    cobro = s.get(Cobro, cobro_id)
    if not cobro:
        raise NotFoundError("Cobro no encontrado")
    return cobro


@bp.get("/")
@require_auth
def cobros_list():
    s = db_session()
    return jsonify([c.to_dict() for c in query_cobros(s, {}).all()])


@bp.get("/filter")
@require_auth
def cobros_filter():
    s = db_session()
    return jsonify([c.to_dict() for c in query_cobros(s, request.args).all()])


@bp.get("/club/<int:club_id>")
@require_auth
def cobros_by_club(club_id: int):
    s = db_session()
    if not s.get(Club, club_id):
        raise NotFoundError(f"El Club con ID {club_id} no existe")
    return jsonify([c.to_dict() for c in query_cobros(s, {"idClub": club_id}).all()])


@bp.get("/equipo/<int:equipo_id>")
@require_auth
def cobros_by_equipo(equipo_id: int):
    s = db_session()
    if not s.get(Equipo, equipo_id):
        raise NotFoundError(f"El Equipo con ID {equipo_id} no existe")
    return jsonify([c.to_dict() for c in query_cobros(s, {"idEquipo": equipo_id}).all()])


@bp.post("/")
@require_admin
def cobros_create():
    s = db_session()
    cobro = create_cobro(s, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Cobro registrado exitosamente", "cobro": cobro.to_dict()}), 201


@bp.get("/<int:cobro_id>")
@require_auth
def cobros_detail(cobro_id: int):
    s = db_session()
    return jsonify(_get_cobro_or_404(s, cobro_id).to_dict())


@bp.put("/<int:cobro_id>")
@require_admin
def cobros_update(cobro_id: int):
    s = db_session()
    cobro = _get_cobro_or_404(s, cobro_id)
    update_cobro(s, cobro, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Cobro actualizado exitosamente", "cobro": cobro.to_dict()})


@bp.delete("/<int:cobro_id>")
@require_admin
def cobros_delete(cobro_id: int):
    s = db_session()
    cobro = _get_cobro_or_404(s, cobro_id)
    delete_cobro(s, cobro, current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Cobro eliminado exitosamente"})


@bp.put("/<int:cobro_id>/estado")
@require_admin
def cobros_estado(cobro_id: int):
    s = db_session()
    cobro = _get_cobro_or_404(s, cobro_id)
    pago = cambiar_estado(s, cobro, _payload(), current_user())
    s.commit()
    body = {"status": "1", "msg": f"Estado del cobro actualizado a '{cobro.estado}'", "cobro": cobro.to_dict()}
    if pago is not None:
        body["pago"] = pago.to_dict()
    return jsonify(body)


@bp.get("/<int:cobro_id>/pagos")
@require_auth
def cobros_pagos(cobro_id: int):
    s = db_session()
    cobro = _get_cobro_or_404(s, cobro_id)
    return jsonify([p.to_dict() for p in cobro.pagos])


@bp.post("/<int:cobro_id>/pagos")
@require_admin
def cobros_registrar_pago(cobro_id: int):
    s = db_session()
    cobro = _get_cobro_or_404(s, cobro_id)
    pago = registrar_pago(s, cobro, _payload(), current_user())
    s.commit()
    return (
        jsonify({"status": "1", "msg": "Pago registrado exitosamente", "pago": pago.to_dict(), "cobro": cobro.to_dict()}),
        201,
    )


@bp.post("/<int:cobro_id>/mercadopago")
@require_auth
def cobros_mercadopago(cobro_id: int):
    s = db_session()
    cobro = _get_cobro_or_404(s, cobro_id)
    pago, checkout = crear_preferencia(
        s,
        cobro,
        current_app.extensions["mercadopago"],
        current_user(),
        frontend_url=current_app.config.get("FRONTEND_URL"),
    )
    s.commit()
    return jsonify({"status": "1", "msg": "Preferencia de pago creada exitosamente", "pago": pago.to_dict(), **checkout}), 201


# ---------- Pagos ----------
def _get_pago_or_404(s, pago_id: int) -> Pago:
    pago = s.get(Pago, pago_id)
    if not pago:
        raise NotFoundError("Pago no encontrado")
    return pago


@pagos_bp.get("/<int:pago_id>")
@require_auth
def pagos_detail(pago_id: int):
    s = db_session()
    return jsonify(_get_pago_or_404(s, pago_id).to_dict())


@pagos_bp.put("/<int:pago_id>")
@require_admin
def pagos_update(pago_id: int):
    s = db_session()
    pago = _get_pago_or_404(s, pago_id)
    update_pago(s, pago, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Pago actualizado exitosamente", "pago": pago.to_dict()})
