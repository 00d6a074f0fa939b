from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.fjv.db import db_session
from app.fjv.models import Rol, Usuario
from app.fjv.modules.usuarios.service import (
    create_rol,
    create_usuario,
    delete_rol,
    delete_usuario,
    update_rol,
    update_usuario,
)
from app.fjv.rbac import current_user, require_admin
from app.fjv.utils import parse_int

bp = Blueprint("usuarios", __name__)
rol_bp = Blueprint("roles", __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_usuario_or_404(s, usuario_id: int) -> Usuario:
    usuario = s.get(Usuario, usuario_id)
    if not usuario:
        abort(404)
    return usuario


# ---------- Usuarios ----------
@bp.post("/login")
def usuario_login():
    from app.fjv.auth import login

    return login()


@bp.get("/")
@require_admin
def usuarios_list():
    s = db_session()
    usuarios = s.query(Usuario).order_by(Usuario.apellido.asc(), Usuario.nombre.asc()).all()
    return jsonify([u.to_dict() for u in usuarios])


@bp.get("/filter")
@require_admin
def usuarios_filter():
    s = db_session()
    q = s.query(Usuario)
    for key, col in (("nombre", Usuario.nombre), ("apellido", Usuario.apellido), ("email", Usuario.email)):
        val = (request.args.get(key) or "").strip()
        if val:
            q = q.filter(col.ilike(f"%{val}%"))
    rol_id = parse_int(request.args.get("rolId"), "rolId")
    if rol_id is not None:
        q = q.filter(Usuario.rol_id == rol_id)
    usuarios = q.order_by(Usuario.apellido.asc(), Usuario.nombre.asc()).all()
    return jsonify([u.to_dict() for u in usuarios])


@bp.post("/")
@require_admin
def usuarios_create():
    s = db_session()
    usuario = create_usuario(s, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Usuario guardado.", "usuario": usuario.to_dict()}), 201


@bp.get("/<int:usuario_id>")
@require_admin
def usuarios_detail(usuario_id: int):
    s = db_session()
    return jsonify(_get_usuario_or_404(s, usuario_id).to_dict())


@bp.put("/<int:usuario_id>")
@require_admin
def usuarios_update(usuario_id: int):
    s = db_session()
    usuario = _get_usuario_or_404(s, usuario_id)
    update_usuario(s, usuario, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Usuario actualizado.", "usuario": usuario.to_dict()})


@bp.delete("/<int:usuario_id>")
@require_admin
def usuarios_delete(usuario_id: int):
    s = db_session()
    usuario = _get_usuario_or_404(s, usuario_id)
    delete_usuario(s, usuario, current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Usuario eliminado."})


# ---------- Roles ----------
def _get_rol_or_404(s, rol_id: int) -> Rol:
    rol = s.get(Rol, rol_id)
    if not rol:
        abort(404)
    return rol


@rol_bp.get("/")
@require_admin
def roles_list():
    s = db_session()
    return jsonify([r.to_dict() for r in s.query(Rol).order_by(Rol.nombre.asc()).all()])


@rol_bp.get("/filter")
@require_admin
def roles_filter():
    s = db_session()
    q = s.query(Rol)
    nombre = (request.args.get("nombre") or "").strip()
    if nombre:
        q = q.filter(Rol.nombre.ilike(f"%{nombre}%"))
    return jsonify([r.to_dict() for r in q.order_by(Rol.nombre.asc()).all()])


@rol_bp.post("/")
@require_admin
def roles_create():
    s = db_session()
    rol = create_rol(s, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Rol guardado.", "rol": rol.to_dict()}), 201


@rol_bp.get("/<int:rol_id>")
@require_admin
def roles_detail(rol_id: int):
    s = db_session()
    return jsonify(_get_rol_or_404(s, rol_id).to_dict())


@rol_bp.put("/<int:rol_id>")
@require_admin
def roles_update(rol_id: int):
    s = db_session()
    rol = _get_rol_or_404(s, rol_id)
    update_rol(s, rol, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Rol actualizado.", "rol": rol.to_dict()})


@rol_bp.delete("/<int:rol_id>")
@require_admin
def roles_delete(rol_id: int):
    s = db_session()
    rol = _get_rol_or_404(s, rol_id)
    delete_rol(s, rol, current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Rol eliminado."})
