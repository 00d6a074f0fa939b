"""Initial schema: usuarios, clubs, categorias, equipos, personas, credenciales.

Revision ID: a0f1c2d3e4b5
Revises:
Create Date: 2026-03-02
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a0f1c2d3e4b5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nombre", sa.String(64), nullable=False),
        sa.Column("descripcion", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("nombre"),
    )

    op.create_table(
        "usuarios",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nombre", sa.String(128), nullable=False),
        sa.Column("apellido", sa.String(128), nullable=False, server_default=""),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("google_id", sa.String(128), nullable=True),
        sa.Column("linkedin_id", sa.String(128), nullable=True),
        sa.Column("provider_type", sa.String(32), nullable=False, server_default="local"),
        sa.Column("foto_perfil", sa.String(1024), nullable=True),
        sa.Column("email_verificado", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("rol_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["rol_id"], ["roles.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("google_id"),
        sa.UniqueConstraint("linkedin_id"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("actor_user_email", sa.String(320), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["actor_user_id"], ["usuarios.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    op.create_table(
        "clubs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nombre", sa.String(255), nullable=False),
        sa.Column("direccion", sa.String(255), nullable=True),
        sa.Column("telefono", sa.String(64), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("cuit", sa.String(13), nullable=True),
        sa.Column("fecha_afiliacion", sa.Date(), nullable=True),
        sa.Column("estado_afiliacion", sa.String(32), nullable=False, server_default="Activo"),
        *_timestamps(),
        sa.UniqueConstraint("nombre"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("cuit"),
    )
    op.create_index("idx_clubs_nombre", "clubs", ["nombre"])
    op.create_index("idx_clubs_estado_afiliacion", "clubs", ["estado_afiliacion"])

    op.create_table(
        "categorias",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nombre", sa.String(100), nullable=False),
        sa.Column("tipo", sa.String(20), nullable=True),
        sa.Column("edad_minima", sa.Integer(), nullable=True),
        sa.Column("edad_maxima", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("nombre"),
    )

    op.create_table(
        "equipos",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nombre", sa.String(255), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("categoria_id", sa.Integer(), nullable=False),
        sa.Column("nombre_delegado", sa.String(255), nullable=True),
        sa.Column("telefono_delegado", sa.String(64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["club_id"], ["clubs.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["categoria_id"], ["categorias.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("nombre", "club_id", "categoria_id", name="uq_equipos_nombre_club_categoria"),
    )
    op.create_index("idx_equipos_club_id", "equipos", ["club_id"])
    op.create_index("idx_equipos_categoria_id", "equipos", ["categoria_id"])

    op.create_table(
        "personas",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nombre_apellido", sa.String(255), nullable=False),
        sa.Column("dni", sa.String(20), nullable=False),
        sa.Column("fecha_nacimiento", sa.Date(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=True),
        sa.Column("tipo", sa.String(64), nullable=True),
        sa.Column("categoria", sa.String(64), nullable=True),
        sa.Column("categoria_nivel", sa.String(64), nullable=True),
        sa.Column("licencia_feva", sa.String(64), nullable=True),
        sa.Column("fecha_licencia", sa.Date(), nullable=True),
        sa.Column("fecha_licencia_baja", sa.Date(), nullable=True),
        sa.Column("estado_licencia", sa.String(16), nullable=False, server_default="ACTIVO"),
        sa.Column("foto_perfil_url", sa.String(1024), nullable=True),
        sa.Column("foto_perfil_delete_url", sa.String(1024), nullable=True),
        sa.Column("foto_perfil_tipo", sa.String(64), nullable=True),
        sa.Column("foto_perfil_tamano", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["club_id"], ["clubs.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("dni"),
        sa.UniqueConstraint("licencia_feva"),
    )
    op.create_index("idx_personas_nombre_apellido", "personas", ["nombre_apellido"])
    op.create_index("idx_personas_club_id", "personas", ["club_id"])
    op.create_index("idx_personas_estado_baja", "personas", ["estado_licencia", "fecha_licencia_baja"])

    op.create_table(
        "credenciales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("persona_id", sa.Integer(), nullable=False),
        sa.Column("identificador", sa.String(64), nullable=False),
        sa.Column("fecha_alta", sa.Date(), nullable=False),
        sa.Column("fecha_vencimiento", sa.Date(), nullable=False),
        sa.Column("estado", sa.String(16), nullable=False, server_default="ACTIVO"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["persona_id"], ["personas.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("identificador"),
    )
    op.create_index("idx_credenciales_persona_id", "credenciales", ["persona_id"])
    op.create_index("idx_credenciales_estado", "credenciales", ["estado"])


def downgrade() -> None:
    op.drop_index("idx_credenciales_estado", table_name="credenciales")
    op.drop_index("idx_credenciales_persona_id", table_name="credenciales")
    op.drop_table("credenciales")
    op.drop_index("idx_personas_estado_baja", table_name="personas")
    op.drop_index("idx_personas_club_id", table_name="personas")
    op.drop_index("idx_personas_nombre_apellido", table_name="personas")
    op.drop_table("personas")
    op.drop_index("idx_equipos_categoria_id", table_name="equipos")
    op.drop_index("idx_equipos_club_id", table_name="equipos")
    op.drop_table("equipos")
    op.drop_table("categorias")
    op.drop_index("idx_clubs_estado_afiliacion", table_name="clubs")
    op.drop_index("idx_clubs_nombre", table_name="clubs")
    op.drop_table("clubs")
    op.drop_table("audit_events")
    op.drop_table("usuarios")
    op.drop_table("roles")
