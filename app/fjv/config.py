import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    jwt_secret: str
    jwt_expires_hours: int

    cors_origin: str
    frontend_url: str

    mp_access_token: str
    mp_webhook_secret: str
    mp_api_base: str
    mp_notification_url: str

    image_host_backend: str
    imgbb_api_key: str
    upload_dir: str

    google_client_id: str
    google_client_secret: str
    google_callback_url: str
    linkedin_client_id: str
    linkedin_client_secret: str
    linkedin_callback_url: str

    http_timeout_seconds: float


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_number(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    secret_key = _getenv("SECRET_KEY", "change-me")
    return Settings(
        secret_key=secret_key,
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///fjv.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        jwt_secret=_getenv("JWT_SECRET", secret_key),
        jwt_expires_hours=int(_getenv_number("JWT_EXPIRES_HOURS", 24)),
        cors_origin=_getenv("CORS_ORIGIN", "http://localhost:4200"),
        frontend_url=_getenv("FRONTEND_URL", "http://localhost:4200"),
        mp_access_token=_getenv("MP_ACCESS_TOKEN", ""),
        mp_webhook_secret=_getenv("MP_WEBHOOK_SECRET", ""),
        mp_api_base=_getenv("MP_API_BASE", "https://api.mercadopago.com"),
        mp_notification_url=_getenv("MP_NOTIFICATION_URL", ""),
        image_host_backend=_getenv("IMAGE_HOST_BACKEND", "local"),
        imgbb_api_key=_getenv("IMGBB_API_KEY", ""),
        upload_dir=_getenv("UPLOAD_DIR", "uploads"),
        google_client_id=_getenv("GOOGLE_CLIENT_ID", ""),
        google_client_secret=_getenv("GOOGLE_CLIENT_SECRET", ""),
        google_callback_url=_getenv("GOOGLE_CALLBACK_URL", "http://localhost:3000/api/auth/google/callback"),
        linkedin_client_id=_getenv("LINKEDIN_CLIENT_ID", ""),
        linkedin_client_secret=_getenv("LINKEDIN_CLIENT_SECRET", ""),
        linkedin_callback_url=_getenv("LINKEDIN_CALLBACK_URL", "http://localhost:3000/api/auth/linkedin/callback"),
        http_timeout_seconds=_getenv_number("HTTP_TIMEOUT_SECONDS", 10.0),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "JWT_SECRET": s.jwt_secret,
        "JWT_EXPIRES_HOURS": s.jwt_expires_hours,
        "CORS_ORIGIN": s.cors_origin,
        "FRONTEND_URL": s.frontend_url,
        "MP_ACCESS_TOKEN": s.mp_access_token,
        "MP_WEBHOOK_SECRET": s.mp_webhook_secret,
        "MP_API_BASE": s.mp_api_base,
        "MP_NOTIFICATION_URL": s.mp_notification_url,
        "IMAGE_HOST_BACKEND": s.image_host_backend,
        "IMGBB_API_KEY": s.imgbb_api_key,
        "UPLOAD_DIR": s.upload_dir,
        "GOOGLE_CLIENT_ID": s.google_client_id,
        "GOOGLE_CLIENT_SECRET": s.google_client_secret,
        "GOOGLE_CALLBACK_URL": s.google_callback_url,
        "LINKEDIN_CLIENT_ID": s.linkedin_client_id,
        "LINKEDIN_CLIENT_SECRET": s.linkedin_client_secret,
        "LINKEDIN_CALLBACK_URL": s.linkedin_callback_url,
        "HTTP_TIMEOUT_SECONDS": s.http_timeout_seconds,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON bodies and multipart uploads (per-file limits enforced in uploads.py)
        "MAX_CONTENT_LENGTH": 50 * 1024 * 1024,
    }
