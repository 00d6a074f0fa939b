from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.fjv.models import Base, iso


class Categoria(Base):
    __tablename__ = "categorias"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nombre: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    tipo: Mapped[str | None] = mapped_column(String(20), nullable=True)  # e.g. "Masculino", "Femenino", "Mixto"
    edad_minima: Mapped[int | None] = mapped_column(Integer, nullable=True)
    edad_maxima: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self) -> dict:
        return {
            "idCategoria": self.id,
            "nombre": self.nombre,
            "tipo": self.tipo,
            "edadMinima": self.edad_minima,
            "edadMaxima": self.edad_maxima,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def to_ref(self) -> dict:
        return {"idCategoria": self.id, "nombre": self.nombre, "tipo": self.tipo}
