from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fjv.constants import ESTADO_ACTIVO
from app.fjv.models import Base, iso

if TYPE_CHECKING:
    from app.fjv.modules.personas.models import Persona


class Credencial(Base):
    __tablename__ = "credenciales"
    __table_args__ = (
        Index("idx_credenciales_persona_id", "persona_id"),
        Index("idx_credenciales_estado", "estado"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    persona_id: Mapped[int] = mapped_column(ForeignKey("personas.id", ondelete="CASCADE"), nullable=False)
    identificador: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # FJV-{personaId}-{year}
    fecha_alta: Mapped[date] = mapped_column(Date, nullable=False)
    fecha_vencimiento: Mapped[date] = mapped_column(Date, nullable=False)
    estado: Mapped[str] = mapped_column(String(16), nullable=False, default=ESTADO_ACTIVO)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    persona: Mapped["Persona"] = relationship("Persona", back_populates="credenciales", lazy="joined")

    def to_dict(self, *, include_persona: bool = True) -> dict:
        d = {
            "idCredencial": self.id,
            "idPersona": self.persona_id,
            "identificador": self.identificador,
            "fechaAlta": iso(self.fecha_alta),
            "fechaVencimiento": iso(self.fecha_vencimiento),
            "estado": self.estado,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if include_persona and self.persona is not None:
            d["persona"] = self.persona.to_ref()
        return d
