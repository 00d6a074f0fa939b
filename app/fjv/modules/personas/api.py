from __future__ import annotations

import logging

from flask import Blueprint, abort, current_app, jsonify, request

from app.fjv.constants import FOTO_PERFIL_MAX_BYTES
from app.fjv.db import db_session
from app.fjv.errors import NotFoundError, UpstreamError
from app.fjv.imagehost import ImageHost, ImageHostError, build_image_name
from app.fjv.modules.personas.licencias import actualizar_estado_licencias, renovar_licencia
from app.fjv.modules.personas.models import Persona
from app.fjv.modules.personas.service import (
    cantidad_por_club,
    cantidad_por_tipo,
    clear_foto,
    create_persona,
    delete_persona,
    query_personas,
    resumen,
    update_persona,
)
from app.fjv.rbac import current_user, require_admin, require_auth
from app.fjv.uploads import read_image
from app.fjv.utils import parse_date

logger = logging.getLogger(__name__)

bp = Blueprint("personas", __name__)


def _image_host() -> ImageHost:
    return current_app.extensions["image_host"]


def _payload() -> dict:
    if request.mimetype == "multipart/form-data" or request.form:
        return request.form.to_dict()
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _upload_foto():
    """Upload the optional `fotoPerfil` file part. Returns (hosted, upload) or None."""
    file = request.files.get("fotoPerfil")
    if not file or not file.filename:
        return None
    upload = read_image(file, max_bytes=FOTO_PERFIL_MAX_BYTES)
    try:
        hosted = _image_host().upload(
            upload.data, build_image_name("persona", upload.filename), content_type=upload.content_type
        )
    except ImageHostError as e:
        logger.error("Profile photo upload failed: %s", e)
        raise UpstreamError("Error al subir la foto de perfil") from e
    return hosted, upload


def _get_persona_or_404(s, persona_id: int) -> Persona:
    persona = s.get(Persona, persona_id)
    if not persona:
        abort(404)
    return persona


@bp.get("/")
@require_auth
def personas_list():
    s = db_session()
    personas = s.query(Persona).order_by(Persona.nombre_apellido.asc()).all()
    return jsonify([p.to_dict() for p in personas])


@bp.get("/filtro/buscar")
@require_auth
def personas_buscar():
    s = db_session()
    return jsonify([p.to_dict() for p in query_personas(s, request.args).all()])


@bp.get("/resumen")
@require_auth
def personas_resumen():
    s = db_session()
    return jsonify(resumen(s))


@bp.get("/tipo")
@require_auth
def personas_por_tipo():
    s = db_session()
    return jsonify(cantidad_por_tipo(s))


@bp.get("/clubes")
@require_auth
def personas_por_club():
    s = db_session()
    return jsonify(cantidad_por_club(s))


@bp.post("/")
@require_admin
def personas_create():
    s = db_session()
    payload = _payload()
    foto = _upload_foto()
    try:
        persona = create_persona(s, payload, current_user(), foto=foto)
        s.commit()
    except Exception:
        if foto is not None:
            _image_host().delete_quietly(foto[0].delete_url)
        raise
    return jsonify({"status": "1", "msg": "Persona creada exitosamente", "persona": persona.to_dict()}), 201


@bp.post("/actualizar-estado-licencias")
@require_admin
def personas_actualizar_estado_licencias():
    s = db_session()
    result = actualizar_estado_licencias(s, current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Estados de licencias actualizados exitosamente", **result})


@bp.get("/<int:persona_id>")
@require_auth
def personas_detail(persona_id: int):
    s = db_session()
    return jsonify(_get_persona_or_404(s, persona_id).to_dict())


@bp.put("/<int:persona_id>")
@require_admin
def personas_update(persona_id: int):
    s = db_session()
    persona = _get_persona_or_404(s, persona_id)
    payload = _payload()
    foto = _upload_foto()
    try:
        old_delete_url = update_persona(s, persona, payload, current_user(), foto=foto)
        s.commit()
    except Exception:
        if foto is not None:
            _image_host().delete_quietly(foto[0].delete_url)
        raise
    _image_host().delete_quietly(old_delete_url)
    return jsonify({"status": "1", "msg": "Persona actualizada exitosamente", "persona": persona.to_dict()})


@bp.delete("/<int:persona_id>")
@require_admin
def personas_delete(persona_id: int):
    s = db_session()
    persona = _get_persona_or_404(s, persona_id)
    delete_url = delete_persona(s, persona, current_user())
    s.commit()
    _image_host().delete_quietly(delete_url)
    return jsonify({"status": "1", "msg": "Persona eliminada exitosamente"})


@bp.put("/<int:persona_id>/renovar")
@require_admin
def personas_renovar(persona_id: int):
    s = db_session()
    persona = _get_persona_or_404(s, persona_id)
    data = request.get_json(silent=True)
    fecha = parse_date((data or {}).get("fechaLicencia"), "fechaLicencia") if isinstance(data, dict) else None
    cred = renovar_licencia(s, persona, current_user(), fecha=fecha)
    s.commit()
    return jsonify(
        {
            "status": "1",
            "msg": "Licencia renovada exitosamente",
            "persona": persona.to_dict(include_credencial=False),
            "credencial": cred.to_dict(include_persona=False),
        }
    )


@bp.get("/<int:persona_id>/foto")
@require_auth
def personas_foto(persona_id: int):
    s = db_session()
    persona = s.get(Persona, persona_id)
    if not persona:
        raise NotFoundError("Persona no encontrada")
    if not persona.foto_perfil_url:
        raise NotFoundError("La persona no tiene foto de perfil")
    return jsonify(
        {
            "status": "1",
            "msg": "Foto de perfil obtenida exitosamente",
            "foto": {
                "idPersona": persona.id,
                "nombreApellido": persona.nombre_apellido,
                "fotoPerfilUrl": persona.foto_perfil_url,
                "tipo": persona.foto_perfil_tipo,
                "tamano": persona.foto_perfil_tamano,
            },
        }
    )


@bp.delete("/<int:persona_id>/foto")
@require_admin
def personas_foto_delete(persona_id: int):
    s = db_session()
    persona = s.get(Persona, persona_id)
    if not persona:
        raise NotFoundError("Persona no encontrada")
    if not persona.foto_perfil_url:
        raise NotFoundError("La persona no tiene foto de perfil")
    delete_url = clear_foto(s, persona, current_user())
    s.commit()
    _image_host().delete_quietly(delete_url)
    return jsonify({"status": "1", "msg": "Foto de perfil eliminada exitosamente"})
