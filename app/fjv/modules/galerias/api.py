from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from app.fjv.constants import GALERIA_IMAGEN_MAX_BYTES, GALERIA_MAX_ARCHIVOS
from app.fjv.db import db_session
from app.fjv.errors import ForbiddenError, NotFoundError, UpstreamError, ValidationError
from app.fjv.imagehost import ImageHost, ImageHostError, build_image_name
from app.fjv.modules.galerias.models import Galeria, Imagen
from app.fjv.modules.galerias.service import (
    agregar_imagenes,
    create_galeria,
    delete_galeria,
    delete_imagen,
    establecer_portada,
    query_galerias,
    reordenar_imagenes,
    update_galeria,
    update_imagen,
)
from app.fjv.rbac import current_user, is_admin, require_admin
from app.fjv.uploads import read_images
from app.fjv.utils import clean_str, parse_bool

logger = logging.getLogger(__name__)

bp = Blueprint("galerias", __name__)


def _image_host() -> ImageHost:
    return current_app.extensions["image_host"]


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_galeria_or_404(s, galeria_id: int) -> Galeria:
    galeria = s.get(Galeria, galeria_id)
    if not galeria:
        raise NotFoundError("Galería no encontrada")
    return galeria


@bp.get("/buscar/galerias")
def galerias_buscar():
    texto = clean_str(request.args.get("query"))
    if not texto:
        raise ValidationError("Se requiere un término de búsqueda")
    s = db_session()
    galerias = query_galerias(s, solo_publicadas=not is_admin(current_user()), texto=texto).all()
    return jsonify([g.to_dict(include_imagenes=False) for g in galerias])


@bp.get("/")
def galerias_list():
    s = db_session()
    solo_publicadas = parse_bool(request.args.get("publicadas")) is True or not is_admin(current_user())
    galerias = query_galerias(s, solo_publicadas=solo_publicadas).all()
    return jsonify([g.to_dict(include_imagenes=False) for g in galerias])


@bp.get("/<int:galeria_id>")
def galerias_detail(galeria_id: int):
    s = db_session()
    galeria = _get_galeria_or_404(s, galeria_id)
    if not galeria.publicada and not is_admin(current_user()):
        raise ForbiddenError("No tienes permiso para ver esta galería")
    return jsonify(galeria.to_dict())


@bp.post("/")
@require_admin
def galerias_create():
    s = db_session()
    galeria = create_galeria(s, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Galería creada exitosamente", "galeria": galeria.to_dict()}), 201


@bp.put("/<int:galeria_id>")
@require_admin
def galerias_update(galeria_id: int):
    s = db_session()
    galeria = _get_galeria_or_404(s, galeria_id)
    update_galeria(s, galeria, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Galería actualizada exitosamente", "galeria": galeria.to_dict()})


@bp.delete("/<int:galeria_id>")
@require_admin
def galerias_delete(galeria_id: int):
    s = db_session()
    galeria = _get_galeria_or_404(s, galeria_id)
    delete_urls = delete_galeria(s, galeria, current_user())
    s.commit()
    if parse_bool(request.args.get("eliminarImagenesImgbb")):
        host = _image_host()
        for url in delete_urls:
            host.delete_quietly(url)
    return jsonify({"status": "1", "msg": "Galería eliminada exitosamente"})


@bp.post("/<int:galeria_id>/imagenes")
@require_admin
def galerias_agregar_imagenes(galeria_id: int):
    s = db_session()
    galeria = _get_galeria_or_404(s, galeria_id)
    uploads = read_images(
        request.files.getlist("imagenes"),
        max_bytes=GALERIA_IMAGEN_MAX_BYTES,
        max_files=GALERIA_MAX_ARCHIVOS,
    )

    host = _image_host()
    subidas = []
    errores = []
    for upload in uploads:
        try:
            hosted = host.upload(upload.data, build_image_name("galeria", upload.filename), content_type=upload.content_type)
        except ImageHostError as e:
            logger.warning("Gallery image upload failed (%s): %s", upload.filename, e)
            errores.append({"archivo": upload.filename, "error": str(e)})
            continue
        subidas.append((hosted, upload))
    if not subidas:
        raise UpstreamError("No se pudo subir ninguna imagen", extra={"errores": errores})

    try:
        imagenes = agregar_imagenes(s, galeria, subidas, current_user(), titulo=clean_str(request.form.get("titulo")))
        s.commit()
    except Exception:
        for hosted, _upload in subidas:
            host.delete_quietly(hosted.delete_url)
        raise
    return (
        jsonify(
            {
                "status": "1",
                "msg": "Imágenes añadidas exitosamente",
                "imagenes": [i.to_dict() for i in imagenes],
                "errores": errores,
            }
        ),
        201,
    )


@bp.put("/imagen/<int:imagen_id>")
@require_admin
def imagenes_update(imagen_id: int):
    s = db_session()
    imagen = s.get(Imagen, imagen_id)
    if not imagen:
        raise NotFoundError("Imagen no encontrada")
    update_imagen(s, imagen, _payload(), current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Imagen actualizada exitosamente", "imagen": imagen.to_dict()})


@bp.delete("/imagen/<int:imagen_id>")
@require_admin
def imagenes_delete(imagen_id: int):
    s = db_session()
    imagen = s.get(Imagen, imagen_id)
    if not imagen:
        raise NotFoundError("Imagen no encontrada")
    delete_url = delete_imagen(s, imagen, current_user())
    s.commit()
    if parse_bool(request.args.get("eliminarDeImgbb")):
        _image_host().delete_quietly(delete_url)
    return jsonify({"status": "1", "msg": "Imagen eliminada exitosamente"})


@bp.post("/<int:galeria_id>/reordenar")
@require_admin
def galerias_reordenar(galeria_id: int):
    s = db_session()
    galeria = _get_galeria_or_404(s, galeria_id)
    imagenes = reordenar_imagenes(s, galeria, _payload().get("ordenamiento"), current_user())
    s.commit()
    return jsonify(
        {"status": "1", "msg": "Imágenes reordenadas exitosamente", "imagenes": [i.to_dict() for i in imagenes]}
    )


@bp.put("/<int:galeria_id>/portada/<int:imagen_id>")
@require_admin
def galerias_portada(galeria_id: int, imagen_id: int):
    s = db_session()
    galeria = _get_galeria_or_404(s, galeria_id)
    establecer_portada(s, galeria, imagen_id, current_user())
    s.commit()
    return jsonify({"status": "1", "msg": "Portada establecida exitosamente", "galeria": galeria.to_dict()})
