import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.fjv.constants import DEFAULT_ROLES, ROL_ADMIN
from app.fjv.models import Rol, Usuario
from scripts._db_utils import resolve_db_url, script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the default roles and the admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@fjv.org.ar").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = resolve_db_url(database_url)

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        roles: dict[str, Rol] = {}
        for nombre, descripcion in DEFAULT_ROLES.items():
            rol = s.query(Rol).filter(Rol.nombre == nombre).one_or_none()
            if not rol:
                rol = Rol(nombre=nombre, descripcion=descripcion)
                s.add(rol)
            roles[nombre] = rol

        user = s.query(Usuario).filter(Usuario.email == admin_email).one_or_none()
        if not user:
            user = Usuario(
                nombre="Administrador",
                apellido="FJV",
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                provider_type="local",
                email_verificado=True,
                is_active=True,
            )
            s.add(user)
        user.rol = roles[ROL_ADMIN]

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
