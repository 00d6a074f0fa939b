"""
Central constants for the federation backend.
"""
from __future__ import annotations

APP_NAME = "API Federación Jujeña de Voley"
APP_VERSION = "1.0.0"

# License / credential states
ESTADO_ACTIVO = "ACTIVO"
ESTADO_INACTIVO = "INACTIVO"
ESTADO_SUSPENDIDO = "SUSPENDIDO"
ESTADO_VENCIDO = "VENCIDO"
ESTADOS_LICENCIA = (ESTADO_ACTIVO, ESTADO_INACTIVO, ESTADO_SUSPENDIDO, ESTADO_VENCIDO)

CREDENCIAL_PREFIX = "FJV"

# Roles seeded by scripts/init_db.py
ROL_ADMIN = "admin"
ROL_USUARIO = "usuario"
ROL_USUARIO_SOCIAL = "usuario_social"
# Lookup order when assigning a role to an OAuth sign-up.
ROLES_SOCIALES = (ROL_USUARIO_SOCIAL, "user", ROL_USUARIO)
DEFAULT_ROLES = {
    ROL_ADMIN: "Administrador del sistema",
    ROL_USUARIO: "Usuario regular del sistema",
    ROL_USUARIO_SOCIAL: "Usuario registrado mediante redes sociales",
}

# Uploads
ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})
FOTO_PERFIL_MAX_BYTES = 4 * 1024 * 1024
GALERIA_IMAGEN_MAX_BYTES = 10 * 1024 * 1024
GALERIA_MAX_ARCHIVOS = 5
