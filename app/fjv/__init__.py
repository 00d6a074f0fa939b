import logging
from datetime import timedelta

from flask import Flask, g, request
from dotenv import load_dotenv

from app.fjv.config import load_config
from app.fjv.db import init_db, teardown_db_session
from app.fjv.errors import json_error, register_error_handlers
from app.fjv.imagehost import imagehost_from_config
from app.fjv.oauth import oauth_clients_from_config
from app.fjv.routes import bp as routes_bp
from app.fjv.auth import bp as auth_bp, load_current_user
from app.fjv.modules.usuarios.api import bp as usuarios_bp, rol_bp
from app.fjv.modules.clubs.api import bp as clubs_bp
from app.fjv.modules.categorias.api import bp as categorias_bp
from app.fjv.modules.equipos.api import bp as equipos_bp
from app.fjv.modules.personas.api import bp as personas_bp
from app.fjv.modules.credenciales.api import bp as credenciales_bp
from app.fjv.modules.cobros.api import bp as cobros_bp, pagos_bp
from app.fjv.modules.galerias.api import bp as galerias_bp
from app.fjv.modules.afiliados.api import bp as afiliados_bp
from app.fjv.modules.webhooks.api import bp as webhooks_bp
from app.fjv.modules.webhooks.mercadopago import mercadopago_from_config

# Writes that never carry a session CSRF token: credential exchange and provider callbacks.
CSRF_EXEMPT_ENDPOINTS = ("auth.login", "auth.logout", "usuarios.usuario_login")
CSRF_EXEMPT_BLUEPRINTS = ("webhooks",)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.url_map.strict_slashes = False

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    from app.fjv.security import needs_csrf_check, validate_csrf

    @app.before_request
    def _cors_preflight():
        if request.method == "OPTIONS":
            return "", 204
        return None

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz", "/uploads/")):
            return None
        if request.endpoint in CSRF_EXEMPT_ENDPOINTS or request.blueprint in CSRF_EXEMPT_BLUEPRINTS:
            return None
        if needs_csrf_check(request) and not validate_csrf(request):
            return json_error("Token CSRF ausente o inválido.", 403)
        return None

    @app.after_request
    def _cors_headers(response):
        origin = app.config.get("CORS_ORIGIN")
        if origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-CSRF-Token, X-Request-Id"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers["Vary"] = "Origin"
        return response

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if str(app.config.get("JWT_SECRET") or "") in ("", "change-me"):
            raise RuntimeError("JWT_SECRET must be set to a strong value in production (not default).")
        if not app.config.get("MP_WEBHOOK_SECRET"):
            app.logger.warning("MP_WEBHOOK_SECRET is not set; MercadoPago webhook signatures will not be verified.")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # External services; tests swap these for fakes after create_app().
    app.extensions["image_host"] = imagehost_from_config(app.config)
    app.extensions["mercadopago"] = mercadopago_from_config(app.config)
    app.extensions["oauth_clients"] = oauth_clients_from_config(app.config)
    if not app.extensions["mercadopago"].configured:
        app.logger.warning("MP_ACCESS_TOKEN is not set; checkout preferences and webhook lookups are disabled.")

    register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(usuarios_bp, url_prefix="/api/usuario")
    app.register_blueprint(rol_bp, url_prefix="/api/rol")
    app.register_blueprint(personas_bp, url_prefix="/api/personas")
    app.register_blueprint(clubs_bp, url_prefix="/api/clubs")
    app.register_blueprint(categorias_bp, url_prefix="/api/categorias")
    app.register_blueprint(equipos_bp, url_prefix="/api/equipos")
    app.register_blueprint(credenciales_bp, url_prefix="/api/credenciales")
    app.register_blueprint(cobros_bp, url_prefix="/api/cobros")
    app.register_blueprint(pagos_bp, url_prefix="/api/pagos")
    app.register_blueprint(galerias_bp, url_prefix="/api/galerias")
    app.register_blueprint(afiliados_bp, url_prefix="/api/afiliados")
    app.register_blueprint(webhooks_bp, url_prefix="/api/webhook")

    def _load_user_wrapper():
        if request.path.startswith(("/health", "/healthz", "/uploads/")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
