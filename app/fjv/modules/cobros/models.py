from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fjv.models import Base, JSONType, iso

if TYPE_CHECKING:
    from app.fjv.modules.clubs.models import Club
    from app.fjv.modules.equipos.models import Equipo


def _money(value: Decimal | None) -> str | None:
    return f"{value:.2f}" if value is not None else None


class Cobro(Base):
    __tablename__ = "cobros"
    __table_args__ = (
        Index("idx_cobros_club_id", "club_id"),
        Index("idx_cobros_equipo_id", "equipo_id"),
        Index("idx_cobros_estado", "estado"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id", ondelete="RESTRICT"), nullable=False)
    equipo_id: Mapped[int | None] = mapped_column(ForeignKey("equipos.id", ondelete="SET NULL"), nullable=True)
    monto: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    fecha_cobro: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    fecha_vencimiento: Mapped[date | None] = mapped_column(Date, nullable=True)
    concepto: Mapped[str] = mapped_column(String(255), nullable=False)
    estado: Mapped[str] = mapped_column(String(16), nullable=False, default="Pendiente")
    comprobante_pago: Mapped[str | None] = mapped_column(String(255), nullable=True)
    observaciones: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    club: Mapped["Club"] = relationship("Club", lazy="joined")
    equipo: Mapped["Equipo | None"] = relationship("Equipo", lazy="joined")
    pagos: Mapped[list["Pago"]] = relationship(
        "Pago",
        back_populates="cobro",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Pago.id",
        lazy="select",
    )

    def to_dict(self) -> dict:
        return {
            "idCobro": self.id,
            "idClub": self.club_id,
            "idEquipo": self.equipo_id,
            "monto": _money(self.monto),
            "fechaCobro": iso(self.fecha_cobro),
            "fechaVencimiento": iso(self.fecha_vencimiento),
            "concepto": self.concepto,
            "estado": self.estado,
            "comprobantePago": self.comprobante_pago,
            "observaciones": self.observaciones,
            "club": self.club.to_ref() if self.club else None,
            "equipo": self.equipo.to_ref() if self.equipo else None,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class Pago(Base):
    __tablename__ = "pagos"
    __table_args__ = (
        Index("idx_pagos_cobro_id", "cobro_id"),
        Index("idx_pagos_preference_id", "preference_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cobro_id: Mapped[int] = mapped_column(ForeignKey("cobros.id", ondelete="CASCADE"), nullable=False)
    # Provider transaction id; null for manual payments and pending checkout preferences.
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    preference_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    monto: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    estado: Mapped[str] = mapped_column(String(16), nullable=False, default="Pendiente")
    metodo_pago: Mapped[str | None] = mapped_column(String(64), nullable=True)  # e.g. "MercadoPago", "Manual"
    fecha_pago: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    datos_extra: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    cobro: Mapped[Cobro] = relationship("Cobro", back_populates="pagos")

    def to_dict(self) -> dict:
        return {
            "idPago": self.id,
            "idCobro": self.cobro_id,
            "paymentId": self.payment_id,
            "preferenceId": self.preference_id,
            "monto": _money(self.monto),
            "estado": self.estado,
            "metodoPago": self.metodo_pago,
            "fechaPago": iso(self.fecha_pago),
            "datosExtra": self.datos_extra,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
