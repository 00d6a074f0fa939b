from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.fjv.db import db_session
from app.fjv.modules.categorias.models import Categoria
from app.fjv.modules.categorias.service import (
    create_categoria,
    delete_categoria,
    query_categorias,
    update_categoria,
)
from app.fjv.rbac import current_user, require_admin

bp = Blueprint("categorias", __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_categoria_or_404(s, categoria_id: int) -> Categoria:
    categoria = s.get(Categoria, categoria_id)
    if not categoria:
        abort(404)
    return categoria


@bp.get("/filter")
def categorias_filter():
    s = db_session()
    return jsonify([c.to_dict() for c in query_categorias(s, request.args).all()])


@bp.get("/")
def categorias_list():
    s = db_session()
    return jsonify([c.to_dict() for c in s.query(Categoria).order_by(Categoria.nombre.asc()).all()])


@bp.post("/")
@require_admin
def categorias_create():
    s = db_session()
    categoria = create_categoria(s, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Categoría creada exitosamente", "categoria": categoria.to_dict()}), 201


@bp.get("/<int:categoria_id>")
def categorias_detail(categoria_id: int):
    s = db_session()
    return jsonify(_get_categoria_or_404(s, categoria_id).to_dict())


@bp.put("/<int:categoria_id>")
@require_admin
def categorias_update(categoria_id: int):
    s = db_session()
    categoria = _get_categoria_or_404(s, categoria_id)
    update_categoria(s, categoria, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Categoría actualizada exitosamente", "categoria": categoria.to_dict()})


@bp.delete("/<int:categoria_id>")
@require_admin
def categorias_delete(categoria_id: int):
    s = db_session()
    categoria = _get_categoria_or_404(s, categoria_id)
    delete_categoria(s, categoria, current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Categoría eliminada exitosamente"})
