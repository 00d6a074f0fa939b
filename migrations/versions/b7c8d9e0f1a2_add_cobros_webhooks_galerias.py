"""Add cobros, pagos, MercadoPago notifications and galerias.

Revision ID: b7c8d9e0f1a2
Revises: a0f1c2d3e4b5
Create Date: 2026-03-16
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "b7c8d9e0f1a2"
down_revision: Union[str, Sequence[str], None] = "a0f1c2d3e4b5"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "cobros",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("equipo_id", sa.Integer(), nullable=True),
        sa.Column("monto", sa.Numeric(10, 2), nullable=False),
        sa.Column("fecha_cobro", sa.Date(), nullable=False),
        sa.Column("fecha_vencimiento", sa.Date(), nullable=True),
        sa.Column("concepto", sa.String(255), nullable=False),
        sa.Column("estado", sa.String(16), nullable=False, server_default="Pendiente"),
        sa.Column("comprobante_pago", sa.String(255), nullable=True),
        sa.Column("observaciones", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["club_id"], ["clubs.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["equipo_id"], ["equipos.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_cobros_club_id", "cobros", ["club_id"])
    op.create_index("idx_cobros_equipo_id", "cobros", ["equipo_id"])
    op.create_index("idx_cobros_estado", "cobros", ["estado"])

    op.create_table(
        "pagos",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cobro_id", sa.Integer(), nullable=False),
        sa.Column("payment_id", sa.String(64), nullable=True),
        sa.Column("preference_id", sa.String(128), nullable=True),
        sa.Column("monto", sa.Numeric(10, 2), nullable=False),
        sa.Column("estado", sa.String(16), nullable=False, server_default="Pendiente"),
        sa.Column("metodo_pago", sa.String(64), nullable=True),
        sa.Column("fecha_pago", sa.DateTime(), nullable=True),
        sa.Column("datos_extra", _json(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["cobro_id"], ["cobros.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("payment_id"),
    )
    op.create_index("idx_pagos_cobro_id", "pagos", ["cobro_id"])
    op.create_index("idx_pagos_preference_id", "pagos", ["preference_id"])

    op.create_table(
        "mercadopago_notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resource_id", sa.String(128), nullable=False),
        sa.Column("topic", sa.String(64), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("application_id", sa.BigInteger(), nullable=True),
        sa.Column("api_version", sa.String(32), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("processing_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("raw_payload", _json(), nullable=True),
        sa.Column("transaction_id", sa.String(128), nullable=True),
        sa.Column("payment_status", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("resource_id", "topic", name="uq_mp_notifications_resource_topic"),
    )

    op.create_table(
        "galerias",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nombre", sa.String(255), nullable=False),
        sa.Column("descripcion", sa.Text(), nullable=True),
        sa.Column("fecha_creacion", sa.DateTime(), nullable=False),
        sa.Column("portada", sa.String(1000), nullable=True),
        sa.Column("publicada", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("autor_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["autor_id"], ["usuarios.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_galerias_publicada", "galerias", ["publicada"])

    op.create_table(
        "imagenes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("galeria_id", sa.Integer(), nullable=False),
        sa.Column("titulo", sa.String(255), nullable=True),
        sa.Column("descripcion", sa.Text(), nullable=True),
        sa.Column("url", sa.String(1000), nullable=False),
        sa.Column("thumb_url", sa.String(1000), nullable=True),
        sa.Column("delete_url", sa.String(1000), nullable=True),
        sa.Column("orden", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("fecha_subida", sa.DateTime(), nullable=False),
        sa.Column("metadatos", _json(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["galeria_id"], ["galerias.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_imagenes_galeria_orden", "imagenes", ["galeria_id", "orden"])


def downgrade() -> None:
    op.drop_index("idx_imagenes_galeria_orden", table_name="imagenes")
    op.drop_table("imagenes")
    op.drop_index("idx_galerias_publicada", table_name="galerias")
    op.drop_table("galerias")
    op.drop_table("mercadopago_notifications")
    op.drop_index("idx_pagos_preference_id", table_name="pagos")
    op.drop_index("idx_pagos_cobro_id", table_name="pagos")
    op.drop_table("pagos")
    op.drop_index("idx_cobros_estado", table_name="cobros")
    op.drop_index("idx_cobros_equipo_id", table_name="cobros")
    op.drop_index("idx_cobros_club_id", table_name="cobros")
    op.drop_table("cobros")
