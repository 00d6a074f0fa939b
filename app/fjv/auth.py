from __future__ import annotations

import secrets
import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, redirect, request, session
from jose import JWTError, jwt

from app.fjv.audit import record_event
from app.fjv.db import db_session
from app.fjv.errors import ValidationError, json_error
from app.fjv.models import Usuario
from app.fjv.modules.usuarios.service import authenticate, find_or_create_oauth_user
from app.fjv.oauth import OAuthError
from app.fjv.rbac import require_auth
from app.fjv.security import ensure_csrf_token

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
JWT_ALGORITHM = "HS256"


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def issue_token(usuario: Usuario) -> str:
    hours = int(current_app.config.get("JWT_EXPIRES_HOURS") or 24)
    claims = {
        "sub": str(usuario.id),
        "id": usuario.id,
        "email": usuario.email,
        "rolId": usuario.rol_id,
        "rol": usuario.rol_nombre,
        "exp": datetime.utcnow() + timedelta(hours=hours),
    }
    return jwt.encode(claims, current_app.config["JWT_SECRET"], algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, current_app.config["JWT_SECRET"], algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization") or ""
    if header.lower().startswith("bearer "):
        return header.split(" ", 1)[1].strip() or None
    return None


def load_current_user() -> None:
    """
    Loads g.current_user from a bearer JWT, falling back to the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    An invalid bearer token leaves the request anonymous; protected routes answer 401.
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
    g.current_user = None
    g.auth_method = None

    token = _bearer_token()
    user_id = None
    if token:
        claims = decode_token(token)
        if not claims:
            return
        user_id = claims.get("id") or claims.get("sub")
        g.auth_method = "jwt"
    else:
        user_id = session.get("user_id")
        g.auth_method = "session" if user_id else None
    if not user_id:
        return

    try:
        s = db_session()
        user = s.get(Usuario, int(user_id))
    except Exception as e:
        current_app.logger.error("load_current_user DB error (request_id=%s): %s", g.request_id, e)
        user = None
    if not user or not user.is_active:
        if g.auth_method == "session":
            session.pop("user_id", None)
        g.auth_method = None
        return
    g.current_user = user


def _login_response(usuario: Usuario, msg: str, status_code: int = 200):
    return jsonify(
        {
            "status": "1",
            "msg": msg,
            "token": issue_token(usuario),
            "usuario": usuario.to_dict(),
        }
    ), status_code


@bp.post("/login")
def login():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        payload = {}
    email = (payload.get("email") or request.form.get("email") or "").strip().lower()
    password = payload.get("password") or request.form.get("password") or ""
    ip = request.remote_addr or "unknown"

    if not email or not password:
        raise ValidationError("Email y contraseña son obligatorios.")

    if _check_rate_limit(ip):
        return json_error("Demasiados intentos de inicio de sesión. Espere 5 minutos.", 429)

    _record_attempt(ip)

    try:
        s = db_session()
        usuario = authenticate(s, email, password)
        if not usuario:
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="Usuario",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            return json_error("Credenciales inválidas.", 401)

        session["user_id"] = usuario.id
        _login_attempts[ip].clear()
        record_event(s, actor=usuario, action="auth.login", entity_type="Usuario", entity_id=str(usuario.id))
        s.commit()
        return _login_response(usuario, "Login exitoso.")
    except Exception:
        current_app.logger.exception("Login crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="Usuario", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return jsonify({"status": "1", "msg": "Sesión cerrada."})


@bp.get("/profile")
@require_auth
def profile():
    return jsonify({"status": "1", "usuario": g.current_user.to_dict()})


@bp.get("/status")
def status():
    user = getattr(g, "current_user", None)
    body = {
        "authenticated": user is not None,
        "method": g.auth_method,
        "usuario": user.to_dict() if user else None,
    }
    if user is not None and g.auth_method == "session":
        body["csrfToken"] = ensure_csrf_token()
    return jsonify(body)


@bp.get("/login-error")
def login_error():
    return json_error("Error en la autenticación con el proveedor externo.", 401)


# ---------- OAuth (Google / LinkedIn) ----------
def _oauth_client(provider: str):
    client = current_app.extensions.get("oauth_clients", {}).get(provider)
    if client is None:
        current_app.logger.warning("OAuth provider %s requested but not configured", provider)
    return client


def _oauth_start(provider: str):
    client = _oauth_client(provider)
    if client is None:
        return json_error(f"El inicio de sesión con {provider} no está configurado.", 503)
    state = secrets.token_urlsafe(24)
    session[f"oauth_state_{provider}"] = state
    return redirect(client.authorization_url(state))


def _oauth_callback(provider: str):
    client = _oauth_client(provider)
    if client is None:
        return json_error(f"El inicio de sesión con {provider} no está configurado.", 503)

    expected_state = session.pop(f"oauth_state_{provider}", None)
    state = request.args.get("state")
    if not expected_state or not state or not secrets.compare_digest(state, expected_state):
        current_app.logger.warning("OAuth %s callback with invalid state (request_id=%s)", provider, g.request_id)
        return json_error("Estado de autenticación inválido.", 401)
    if request.args.get("error"):
        return json_error(f"El proveedor rechazó la autenticación: {request.args.get('error')}", 401)
    code = request.args.get("code")
    if not code:
        return json_error("Falta el código de autorización.", 400)

    try:
        profile = client.authenticate(code)
    except OAuthError as e:
        current_app.logger.error("OAuth %s failed (request_id=%s): %s", provider, g.request_id, e)
        return json_error("Error en la autenticación con el proveedor externo.", 401)

    s = db_session()
    usuario, created = find_or_create_oauth_user(s, profile)
    if not usuario.is_active:
        s.rollback()
        return json_error("La cuenta está deshabilitada.", 403)
    session["user_id"] = usuario.id
    record_event(
        s,
        actor=usuario,
        action="auth.login",
        entity_type="Usuario",
        entity_id=str(usuario.id),
        metadata={"provider": provider, "created": created},
    )
    s.commit()
    return _login_response(usuario, f"Autenticación con {provider} exitosa.")


@bp.get("/google")
def google_start():
    return _oauth_start("google")


@bp.get("/google/callback")
def google_callback():
    return _oauth_callback("google")


@bp.get("/linkedin")
def linkedin_start():
    return _oauth_start("linkedin")


@bp.get("/linkedin/callback")
def linkedin_callback():
    return _oauth_callback("linkedin")
