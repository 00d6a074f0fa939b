from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fjv.constants import ESTADO_ACTIVO
from app.fjv.models import Base, iso

if TYPE_CHECKING:
    from app.fjv.modules.clubs.models import Club
    from app.fjv.modules.credenciales.models import Credencial


class Persona(Base):
    __tablename__ = "personas"
    __table_args__ = (
        Index("idx_personas_nombre_apellido", "nombre_apellido"),
        Index("idx_personas_club_id", "club_id"),
        # Range query used by the license-expiry sweep.
        Index("idx_personas_estado_baja", "estado_licencia", "fecha_licencia_baja"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Identity
    nombre_apellido: Mapped[str] = mapped_column(String(255), nullable=False)
    dni: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    fecha_nacimiento: Mapped[date] = mapped_column(Date, nullable=False)

    # Affiliation
    club_id: Mapped[int | None] = mapped_column(ForeignKey("clubs.id", ondelete="RESTRICT"), nullable=True)
    tipo: Mapped[str | None] = mapped_column(String(64), nullable=True)  # e.g. "Jugador", "Entrenador", "Árbitro"
    categoria: Mapped[str | None] = mapped_column(String(64), nullable=True)
    categoria_nivel: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # License
    licencia_feva: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    fecha_licencia: Mapped[date | None] = mapped_column(Date, nullable=True)
    fecha_licencia_baja: Mapped[date | None] = mapped_column(Date, nullable=True)
    estado_licencia: Mapped[str] = mapped_column(String(16), nullable=False, default=ESTADO_ACTIVO)

    # Profile photo on the image host
    foto_perfil_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    foto_perfil_delete_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    foto_perfil_tipo: Mapped[str | None] = mapped_column(String(64), nullable=True)
    foto_perfil_tamano: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    club: Mapped["Club | None"] = relationship("Club", lazy="joined")
    credenciales: Mapped[list["Credencial"]] = relationship(
        "Credencial",
        back_populates="persona",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="[Credencial.fecha_alta.desc(), Credencial.id.desc()]",
        lazy="selectin",
    )

    @property
    def credencial_actual(self) -> "Credencial | None":
        if not self.credenciales:
            return None
        return max(self.credenciales, key=lambda c: (c.fecha_alta, c.id or 0))

    def to_dict(self, *, include_credencial: bool = True) -> dict:
        d = {
            "idPersona": self.id,
            "nombreApellido": self.nombre_apellido,
            "dni": self.dni,
            "fechaNacimiento": iso(self.fecha_nacimiento),
            "idClub": self.club_id,
            "club": self.club.to_ref() if self.club else None,
            "tipo": self.tipo,
            "categoria": self.categoria,
            "categoriaNivel": self.categoria_nivel,
            "licenciaFEVA": self.licencia_feva,
            "fechaLicencia": iso(self.fecha_licencia),
            "fechaLicenciaBaja": iso(self.fecha_licencia_baja),
            "estadoLicencia": self.estado_licencia,
            "fotoPerfil": self.foto_perfil_url,
            "fotoPerfilTipo": self.foto_perfil_tipo,
            "fotoPerfilTamano": self.foto_perfil_tamano,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if include_credencial:
            cred = self.credencial_actual
            d["credencial"] = cred.to_dict(include_persona=False) if cred else None
        return d

    def to_ref(self) -> dict:
        return {
            "idPersona": self.id,
            "nombreApellido": self.nombre_apellido,
            "dni": self.dni,
            "estadoLicencia": self.estado_licencia,
        }
