from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.fjv.models import Base, JSONType, iso


class MercadoPagoNotification(Base):
    """
    One row per (resource_id, topic) delivered by the payment gateway.
    Append-only: rows are never deleted; only the processing fields change.
    """

    __tablename__ = "mercadopago_notifications"
    __table_args__ = (
        UniqueConstraint("resource_id", "topic", name="uq_mp_notifications_resource_topic"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource_id: Mapped[str] = mapped_column(String(128), nullable=False)
    topic: Mapped[str] = mapped_column(String(64), nullable=False)  # payment, merchant_order, ...
    user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    application_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    api_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    processing_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    transaction_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payment_status: Mapped[str | None] = mapped_column(String(32), nullable=True)  # provider status, e.g. "approved"

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def is_processed(self) -> bool:
        return self.processing_status == "processed"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resourceId": self.resource_id,
            "topic": self.topic,
            "processingStatus": self.processing_status,
            "processingError": self.processing_error,
            "transactionId": self.transaction_id,
            "paymentStatus": self.payment_status,
            "sentAt": iso(self.sent_at),
            "createdAt": iso(self.created_at),
        }
