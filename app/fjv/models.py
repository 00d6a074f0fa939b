from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


def iso(value) -> str | None:
    return value.isoformat() if value is not None else None


class Rol(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nombre: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "admin"
    descripcion: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    usuarios: Mapped[list["Usuario"]] = relationship("Usuario", back_populates="rol", lazy="select")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nombre": self.nombre,
            "descripcion": self.descripcion,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class Usuario(Base):
    __tablename__ = "usuarios"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nombre: Mapped[str] = mapped_column(String(128), nullable=False)
    apellido: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    # Null for accounts created through Google/LinkedIn.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    google_id: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    linkedin_id: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    provider_type: Mapped[str] = mapped_column(String(32), nullable=False, default="local")  # local, google, linkedin
    foto_perfil: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    email_verificado: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rol_id: Mapped[int | None] = mapped_column(ForeignKey("roles.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    rol: Mapped[Rol | None] = relationship("Rol", back_populates="usuarios", lazy="joined")

    @property
    def rol_nombre(self) -> str | None:
        return self.rol.nombre if self.rol else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nombre": self.nombre,
            "apellido": self.apellido,
            "email": self.email,
            "providerType": self.provider_type,
            "fotoPerfil": self.foto_perfil,
            "emailVerificado": self.email_verificado,
            "activo": self.is_active,
            "rolId": self.rol_id,
            "rol": self.rol.to_dict() if self.rol else None,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Keep this table intentionally generic; module-specific tables can refer to it by id if needed.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "licencia.renovar"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Persona"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.fjv.modules.clubs.models import Club  # noqa: E402,F401
from app.fjv.modules.categorias.models import Categoria  # noqa: E402,F401
from app.fjv.modules.equipos.models import Equipo  # noqa: E402,F401
from app.fjv.modules.personas.models import Persona  # noqa: E402,F401
from app.fjv.modules.credenciales.models import Credencial  # noqa: E402,F401
from app.fjv.modules.cobros.models import Cobro, Pago  # noqa: E402,F401
from app.fjv.modules.webhooks.models import MercadoPagoNotification  # noqa: E402,F401
from app.fjv.modules.galerias.models import Galeria, Imagen  # noqa: E402,F401
