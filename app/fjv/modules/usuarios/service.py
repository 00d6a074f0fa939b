from __future__ import annotations

import re
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from werkzeug.security import check_password_hash, generate_password_hash

from app.fjv.audit import record_event
from app.fjv.constants import ROL_USUARIO, ROLES_SOCIALES
from app.fjv.errors import ConflictError, ValidationError, raise_if_errors
from app.fjv.models import Rol, Usuario
from app.fjv.utils import clean_str, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fjv.oauth import OAuthProfile


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def normalize_email(value) -> str:
    return (clean_str(value) or "").lower()


def validate_usuario_payload(payload: dict, *, creating: bool) -> list[str]:
    errors = []
    email = normalize_email(payload.get("email"))
    if creating or "email" in payload:
        if not email:
            errors.append("El email es obligatorio.")
        elif not EMAIL_RE.match(email):
            errors.append("El email no tiene un formato válido.")
    if creating and not clean_str(payload.get("nombre")):
        errors.append("El nombre es obligatorio.")
    password = payload.get("password")
    if creating and not password:
        errors.append("La contraseña es obligatoria.")
    if password and len(str(password)) < MIN_PASSWORD_LENGTH:
        errors.append(f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres.")
    return errors


def _email_taken(s: "Session", email: str, *, exclude_id: int | None = None) -> bool:
    q = select(Usuario.id).where(func.lower(Usuario.email) == email)
    if exclude_id is not None:
        q = q.where(Usuario.id != exclude_id)
    return s.execute(q).first() is not None


def _resolve_rol(s: "Session", rol_id) -> Rol:
    rid = parse_int(rol_id, "rolId")
    if rid is None:
        rol = s.query(Rol).filter(Rol.nombre == ROL_USUARIO).one_or_none()
        if not rol:
            raise ValidationError("No existe el rol por defecto 'usuario'.")
        return rol
    rol = s.get(Rol, rid)
    if not rol:
        raise ValidationError("El rol indicado no existe.")
    return rol


def create_usuario(s: "Session", payload: dict, actor: Usuario | None) -> Usuario:
    raise_if_errors(validate_usuario_payload(payload, creating=True))
    email = normalize_email(payload.get("email"))
    if _email_taken(s, email):
        raise ConflictError("El email ya está registrado en el sistema", extra={"error": "EMAIL_ALREADY_EXISTS"})
    rol = _resolve_rol(s, payload.get("rolId"))
    usuario = Usuario(
        nombre=clean_str(payload.get("nombre")) or "",
        apellido=clean_str(payload.get("apellido")) or "",
        email=email,
        password_hash=generate_password_hash(str(payload["password"])),
        provider_type="local",
        foto_perfil=clean_str(payload.get("fotoPerfil")),
        email_verificado=bool(parse_bool(payload.get("emailVerificado"))),
        is_active=True,
        rol=rol,
    )
    s.add(usuario)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="usuario.create",
        entity_type="Usuario",
        entity_id=str(usuario.id),
        metadata={"email": usuario.email, "rol": rol.nombre},
    )
    return usuario


def update_usuario(s: "Session", usuario: Usuario, payload: dict, actor: Usuario | None) -> Usuario:
    raise_if_errors(validate_usuario_payload(payload, creating=False))
    changes = {}

    if "email" in payload:
        new_email = normalize_email(payload.get("email"))
        if new_email != usuario.email:
            if _email_taken(s, new_email, exclude_id=usuario.id):
                raise ConflictError("El email ya está registrado en el sistema", extra={"error": "EMAIL_ALREADY_EXISTS"})
            changes["email"] = {"old": usuario.email, "new": new_email}
            usuario.email = new_email

    for key, attr in (("nombre", "nombre"), ("apellido", "apellido"), ("fotoPerfil", "foto_perfil")):
        if key in payload:
            new_val = clean_str(payload.get(key))
            if attr in ("nombre", "apellido"):
                new_val = new_val or ""
            if new_val != getattr(usuario, attr):
                changes[attr] = {"old": getattr(usuario, attr), "new": new_val}
                setattr(usuario, attr, new_val)

    if "rolId" in payload:
        rol = _resolve_rol(s, payload.get("rolId"))
        if rol.id != usuario.rol_id:
            changes["rol"] = {"old": usuario.rol_nombre, "new": rol.nombre}
            usuario.rol = rol

    for key, attr in (("activo", "is_active"), ("emailVerificado", "email_verificado")):
        if key in payload:
            flag = parse_bool(payload.get(key))
            if flag is not None and flag != getattr(usuario, attr):
                changes[attr] = {"old": getattr(usuario, attr), "new": flag}
                setattr(usuario, attr, flag)

    if payload.get("password"):
        usuario.password_hash = generate_password_hash(str(payload["password"]))
        changes["password"] = "changed"

    record_event(
        s,
        actor=actor,
        action="usuario.edit",
        entity_type="Usuario",
        entity_id=str(usuario.id),
        metadata={"email": usuario.email, "changes": changes},
    )
    return usuario


def delete_usuario(s: "Session", usuario: Usuario, actor: Usuario | None) -> None:
    if actor is not None and actor.id == usuario.id:
        raise ValidationError("No puede eliminar su propio usuario.")
    record_event(
        s,
        actor=actor,
        action="usuario.delete",
        entity_type="Usuario",
        entity_id=str(usuario.id),
        metadata={"email": usuario.email},
    )
    s.delete(usuario)


def authenticate(s: "Session", email: str, password: str) -> Usuario | None:
    usuario = s.query(Usuario).filter(func.lower(Usuario.email) == normalize_email(email)).one_or_none()
    if not usuario or not usuario.is_active or not usuario.password_hash:
        return None
    if not check_password_hash(usuario.password_hash, password):
        return None
    return usuario


def get_social_role(s: "Session") -> Rol:
    for nombre in ROLES_SOCIALES:
        rol = s.query(Rol).filter(Rol.nombre == nombre).one_or_none()
        if rol:
            return rol
    raise ValidationError("No existe un rol para usuarios de redes sociales.")


def find_or_create_oauth_user(s: "Session", profile: "OAuthProfile") -> tuple[Usuario, bool]:
    """
    Resolve a social login: by provider id, then by email (linking the provider id),
    otherwise create a new account with the social role. Returns (usuario, created).
    """
    id_attr = Usuario.google_id if profile.provider == "google" else Usuario.linkedin_id
    usuario = s.query(Usuario).filter(id_attr == profile.subject).one_or_none()
    if usuario:
        return usuario, False

    if profile.email:
        usuario = s.query(Usuario).filter(func.lower(Usuario.email) == profile.email).one_or_none()
        if usuario:
            setattr(usuario, id_attr.key, profile.subject)
            if profile.foto and not usuario.foto_perfil:
                usuario.foto_perfil = profile.foto
            usuario.email_verificado = usuario.email_verificado or profile.email_verificado
            record_event(
                s,
                actor=usuario,
                action="usuario.link_provider",
                entity_type="Usuario",
                entity_id=str(usuario.id),
                metadata={"provider": profile.provider},
            )
            return usuario, False

    if not profile.email:
        raise ValidationError(f"La cuenta de {profile.provider} no informa un email.")

    usuario = Usuario(
        nombre=profile.nombre,
        apellido=profile.apellido,
        email=profile.email,
        password_hash=None,
        provider_type=profile.provider,
        foto_perfil=profile.foto,
        email_verificado=profile.email_verificado,
        is_active=True,
        rol=get_social_role(s),
    )
    setattr(usuario, id_attr.key, profile.subject)
    s.add(usuario)
    s.flush()
    record_event(
        s,
        actor=usuario,
        action="usuario.create",
        entity_type="Usuario",
        entity_id=str(usuario.id),
        metadata={"email": usuario.email, "provider": profile.provider},
    )
    return usuario, True


# ---------- Roles ----------
def validate_rol_payload(payload: dict) -> list[str]:
    errors = []
    if not clean_str(payload.get("nombre")):
        errors.append("El nombre del rol es obligatorio.")
    return errors


def _rol_name_taken(s: "Session", nombre: str, *, exclude_id: int | None = None) -> bool:
    q = select(Rol.id).where(func.lower(Rol.nombre) == nombre.lower())
    if exclude_id is not None:
        q = q.where(Rol.id != exclude_id)
    return s.execute(q).first() is not None


def create_rol(s: "Session", payload: dict, actor: Usuario | None) -> Rol:
    raise_if_errors(validate_rol_payload(payload))
    nombre = clean_str(payload.get("nombre")) or ""
    if _rol_name_taken(s, nombre):
        raise ConflictError("Ya existe un rol con ese nombre.")
    rol = Rol(nombre=nombre, descripcion=clean_str(payload.get("descripcion")))
    s.add(rol)
    s.flush()
    record_event(s, actor=actor, action="rol.create", entity_type="Rol", entity_id=str(rol.id), metadata={"nombre": nombre})
    return rol


def update_rol(s: "Session", rol: Rol, payload: dict, actor: Usuario | None) -> Rol:
    changes = {}
    if "nombre" in payload:
        raise_if_errors(validate_rol_payload(payload))
        nombre = clean_str(payload.get("nombre")) or ""
        if nombre != rol.nombre:
            if _rol_name_taken(s, nombre, exclude_id=rol.id):
                raise ConflictError("Ya existe un rol con ese nombre.")
            changes["nombre"] = {"old": rol.nombre, "new": nombre}
            rol.nombre = nombre
    if "descripcion" in payload:
        desc = clean_str(payload.get("descripcion"))
        if desc != rol.descripcion:
            changes["descripcion"] = {"old": rol.descripcion, "new": desc}
            rol.descripcion = desc
    record_event(s, actor=actor, action="rol.edit", entity_type="Rol", entity_id=str(rol.id), metadata={"changes": changes})
    return rol


def delete_rol(s: "Session", rol: Rol, actor: Usuario | None) -> None:
    in_use = s.query(func.count(Usuario.id)).filter(Usuario.rol_id == rol.id).scalar() or 0
    if in_use:
        raise ValidationError(f"No se puede eliminar el rol: {in_use} usuario(s) lo tienen asignado.")
    record_event(s, actor=actor, action="rol.delete", entity_type="Rol", entity_id=str(rol.id), metadata={"nombre": rol.nombre})
    s.delete(rol)
