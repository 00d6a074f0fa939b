from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fjv.models import Base, iso

if TYPE_CHECKING:
    from app.fjv.modules.categorias.models import Categoria
    from app.fjv.modules.clubs.models import Club


class Equipo(Base):
    __tablename__ = "equipos"
    __table_args__ = (
        UniqueConstraint("nombre", "club_id", "categoria_id", name="uq_equipos_nombre_club_categoria"),
        Index("idx_equipos_club_id", "club_id"),
        Index("idx_equipos_categoria_id", "categoria_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nombre: Mapped[str] = mapped_column(String(255), nullable=False)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id", ondelete="RESTRICT"), nullable=False)
    categoria_id: Mapped[int] = mapped_column(ForeignKey("categorias.id", ondelete="RESTRICT"), nullable=False)
    nombre_delegado: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telefono_delegado: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    club: Mapped["Club"] = relationship("Club", lazy="joined")
    categoria: Mapped["Categoria"] = relationship("Categoria", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "idEquipo": self.id,
            "nombre": self.nombre,
            "idClub": self.club_id,
            "idCategoria": self.categoria_id,
            "nombreDelegado": self.nombre_delegado,
            "telefonoDelegado": self.telefono_delegado,
            "club": self.club.to_ref() if self.club else None,
            "categoria": self.categoria.to_ref() if self.categoria else None,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def to_ref(self) -> dict:
        return {"idEquipo": self.id, "nombre": self.nombre}
