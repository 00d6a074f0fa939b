from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.fjv.models import Base, iso


class Club(Base):
    __tablename__ = "clubs"
    __table_args__ = (
        Index("idx_clubs_nombre", "nombre"),
        Index("idx_clubs_estado_afiliacion", "estado_afiliacion"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nombre: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    direccion: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telefono: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    cuit: Mapped[str | None] = mapped_column(String(13), nullable=True, unique=True)
    fecha_afiliacion: Mapped[date | None] = mapped_column(Date, nullable=True)
    estado_afiliacion: Mapped[str] = mapped_column(String(32), nullable=False, default="Activo")  # Activo, Inactivo, Suspendido

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self) -> dict:
        return {
            "idClub": self.id,
            "nombre": self.nombre,
            "direccion": self.direccion,
            "telefono": self.telefono,
            "email": self.email,
            "cuit": self.cuit,
            "fechaAfiliacion": iso(self.fecha_afiliacion),
            "estadoAfiliacion": self.estado_afiliacion,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def to_ref(self) -> dict:
        return {"idClub": self.id, "nombre": self.nombre}
