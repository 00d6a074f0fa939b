from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.fjv.audit import record_event
from app.fjv.errors import NotFoundError, ValidationError
from app.fjv.modules.galerias.models import Galeria, Imagen
from app.fjv.utils import clean_str, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.fjv.imagehost import HostedImage
    from app.fjv.models import Usuario
    from app.fjv.uploads import UploadedImage


def create_galeria(s: "Session", payload: dict, user: "Usuario | None") -> Galeria:
    nombre = clean_str(payload.get("nombre"))
    if not nombre:
        raise ValidationError("El nombre de la galería es obligatorio")
    publicada = parse_bool(payload.get("publicada"))
    galeria = Galeria(
        nombre=nombre,
        descripcion=clean_str(payload.get("descripcion")),
        publicada=True if publicada is None else publicada,
        autor_id=user.id if user else None,
    )
    s.add(galeria)
    s.flush()
    record_event(s, actor=user, action="galeria.create", entity_type="Galeria", entity_id=str(galeria.id),
                 metadata={"nombre": nombre})
    return galeria


def update_galeria(s: "Session", galeria: Galeria, payload: dict, user: "Usuario | None") -> None:
    changes = {}
    if "nombre" in payload:
        nombre = clean_str(payload.get("nombre"))
        if not nombre:
            raise ValidationError("El nombre de la galería es obligatorio")
        if nombre != galeria.nombre:
            changes["nombre"] = {"old": galeria.nombre, "new": nombre}
            galeria.nombre = nombre
    for key in ("descripcion", "portada"):
        if key in payload:
            val = clean_str(payload.get(key))
            if val != getattr(galeria, key):
                changes[key] = {"old": getattr(galeria, key), "new": val}
                setattr(galeria, key, val)
    if "publicada" in payload:
        publicada = parse_bool(payload.get("publicada"))
        if publicada is None:
            raise ValidationError("El campo 'publicada' debe ser booleano")
        if publicada != galeria.publicada:
            changes["publicada"] = {"old": galeria.publicada, "new": publicada}
            galeria.publicada = publicada
    record_event(s, actor=user, action="galeria.edit", entity_type="Galeria", entity_id=str(galeria.id),
                 metadata={"changes": changes})


def delete_galeria(s: "Session", galeria: Galeria, user: "Usuario | None") -> list[str]:
    """Delete a gallery (images cascade). Returns the image-host delete handles of its images."""
    delete_urls = [i.delete_url for i in galeria.imagenes if i.delete_url]
    record_event(
        s,
        actor=user,
        action="galeria.delete",
        entity_type="Galeria",
        entity_id=str(galeria.id),
        metadata={"nombre": galeria.nombre, "imagenes": len(galeria.imagenes)},
    )
    s.delete(galeria)
    return delete_urls


def agregar_imagenes(
    s: "Session",
    galeria: Galeria,
    subidas: "list[tuple[HostedImage, UploadedImage]]",
    user: "Usuario | None",
    *,
    titulo: str | None = None,
) -> list[Imagen]:
    """
    Attach already-hosted images. Orden continues after the current maximum;
    a gallery without a cover takes the first new image as cover.
    """
    if not subidas:
        raise ValidationError("No se recibieron imágenes para agregar")
    orden = s.query(func.max(Imagen.orden)).filter(Imagen.galeria_id == galeria.id).scalar() or 0
    now = datetime.utcnow()
    imagenes = []
    for hosted, upload in subidas:
        orden += 1
        imagen = Imagen(
            galeria=galeria,
            titulo=titulo or f"Imagen {orden}",
            url=hosted.url,
            thumb_url=hosted.thumb_url,
            delete_url=hosted.delete_url,
            orden=orden,
            fecha_subida=now,
            metadatos={
                "width": hosted.width,
                "height": hosted.height,
                "size": hosted.size or upload.size,
                "tipo": upload.content_type,
                "nombreOriginal": upload.filename,
            },
        )
        s.add(imagen)
        imagenes.append(imagen)
    if not galeria.portada:
        galeria.portada = imagenes[0].url
    s.flush()
    record_event(
        s,
        actor=user,
        action="galeria.imagenes_add",
        entity_type="Galeria",
        entity_id=str(galeria.id),
        metadata={"imagenes": [i.id for i in imagenes]},
    )
    return imagenes


def update_imagen(s: "Session", imagen: Imagen, payload: dict, user: "Usuario | None") -> None:
    changes = {}
    for key in ("titulo", "descripcion"):
        if key in payload:
            val = clean_str(payload.get(key))
            if val != getattr(imagen, key):
                changes[key] = {"old": getattr(imagen, key), "new": val}
                setattr(imagen, key, val)
    if "orden" in payload:
        orden = parse_int(payload.get("orden"), "orden")
        if orden is None or orden < 0:
            raise ValidationError("El orden debe ser un número entero no negativo")
        if orden != imagen.orden:
            changes["orden"] = {"old": imagen.orden, "new": orden}
            imagen.orden = orden
    record_event(s, actor=user, action="imagen.edit", entity_type="Imagen", entity_id=str(imagen.id),
                 metadata={"changes": changes})


def delete_imagen(s: "Session", imagen: Imagen, user: "Usuario | None") -> str | None:
    """Delete one image. A gallery whose cover was this image falls back to its next image."""
    galeria = imagen.galeria
    delete_url = imagen.delete_url
    if galeria.portada == imagen.url:
        restantes = sorted((i for i in galeria.imagenes if i.id != imagen.id), key=lambda i: (i.orden, i.id))
        galeria.portada = restantes[0].url if restantes else None
    record_event(s, actor=user, action="imagen.delete", entity_type="Imagen", entity_id=str(imagen.id),
                 metadata={"galeria_id": galeria.id})
    # delete-orphan removes the row on flush
    galeria.imagenes.remove(imagen)
    return delete_url


def reordenar_imagenes(s: "Session", galeria: Galeria, ordenamiento, user: "Usuario | None") -> list[Imagen]:
    """Apply `[{idImagen, orden}, ...]`. Ids that belong to another gallery are rejected."""
    if not isinstance(ordenamiento, list):
        raise ValidationError("El ordenamiento debe ser un array de objetos {idImagen, orden}")
    por_id = {i.id: i for i in galeria.imagenes}
    for item in ordenamiento:
        if not isinstance(item, dict):
            raise ValidationError("El ordenamiento debe ser un array de objetos {idImagen, orden}")
        imagen_id = parse_int(item.get("idImagen"), "idImagen")
        orden = parse_int(item.get("orden"), "orden")
        if imagen_id not in por_id:
            raise ValidationError(f"La imagen {imagen_id} no pertenece a esta galería")
        if orden is None or orden < 0:
            raise ValidationError("El orden debe ser un número entero no negativo")
        por_id[imagen_id].orden = orden
    record_event(s, actor=user, action="galeria.reordenar", entity_type="Galeria", entity_id=str(galeria.id),
                 metadata={"ordenamiento": ordenamiento})
    return sorted(galeria.imagenes, key=lambda i: (i.orden, i.id))


def establecer_portada(s: "Session", galeria: Galeria, imagen_id: int, user: "Usuario | None") -> Imagen:
    imagen = next((i for i in galeria.imagenes if i.id == imagen_id), None)
    if imagen is None:
        raise NotFoundError("Imagen no encontrada en esta galería")
    galeria.portada = imagen.url
    record_event(s, actor=user, action="galeria.portada", entity_type="Galeria", entity_id=str(galeria.id),
                 metadata={"imagen_id": imagen.id})
    return imagen


def query_galerias(s: "Session", *, solo_publicadas: bool, texto: str | None = None) -> "Query":
    q = s.query(Galeria)
    if solo_publicadas:
        q = q.filter(Galeria.publicada.is_(True))
    if texto:
        pattern = f"%{texto}%"
        q = q.filter(or_(Galeria.nombre.ilike(pattern), Galeria.descripcion.ilike(pattern)))
    return q.order_by(Galeria.fecha_creacion.desc(), Galeria.id.desc())
