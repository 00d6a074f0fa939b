from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fjv.models import Base, JSONType, iso

if TYPE_CHECKING:
    from app.fjv.models import Usuario


class Galeria(Base):
    __tablename__ = "galerias"
    __table_args__ = (Index("idx_galerias_publicada", "publicada"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nombre: Mapped[str] = mapped_column(String(255), nullable=False)
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    portada: Mapped[str | None] = mapped_column(String(1000), nullable=True)  # cover image URL
    publicada: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    autor_id: Mapped[int | None] = mapped_column(ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    autor: Mapped["Usuario | None"] = relationship("Usuario")
    imagenes: Mapped[list["Imagen"]] = relationship(
        "Imagen",
        back_populates="galeria",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="[Imagen.orden, Imagen.id]",
        lazy="selectin",
    )

    def to_dict(self, *, include_imagenes: bool = True) -> dict:
        d = {
            "idGaleria": self.id,
            "nombre": self.nombre,
            "descripcion": self.descripcion,
            "fechaCreacion": iso(self.fecha_creacion),
            "portada": self.portada,
            "publicada": self.publicada,
            "autorId": self.autor_id,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        imagenes = sorted(self.imagenes, key=lambda i: (i.orden, i.id or 0))
        if include_imagenes:
            d["imagenes"] = [i.to_dict() for i in imagenes]
        else:
            # Listing: first image only, as a preview.
            d["imagenes"] = [i.to_preview() for i in imagenes[:1]]
        d["totalImagenes"] = len(imagenes)
        return d


class Imagen(Base):
    __tablename__ = "imagenes"
    __table_args__ = (Index("idx_imagenes_galeria_orden", "galeria_id", "orden"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    galeria_id: Mapped[int] = mapped_column(ForeignKey("galerias.id", ondelete="CASCADE"), nullable=False)
    titulo: Mapped[str | None] = mapped_column(String(255), nullable=True)
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    thumb_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    delete_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    orden: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fecha_subida: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    metadatos: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)  # width, height, size

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    galeria: Mapped[Galeria] = relationship("Galeria", back_populates="imagenes")

    def to_preview(self) -> dict:
        return {"idImagen": self.id, "url": self.url, "thumbUrl": self.thumb_url, "titulo": self.titulo}

    def to_dict(self) -> dict:
        return {
            "idImagen": self.id,
            "idGaleria": self.galeria_id,
            "titulo": self.titulo,
            "descripcion": self.descripcion,
            "url": self.url,
            "thumbUrl": self.thumb_url,
            "orden": self.orden,
            "fechaSubida": iso(self.fecha_subida),
            "metadatos": self.metadatos,
        }
