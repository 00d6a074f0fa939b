from flask import Blueprint, abort, current_app, send_file

from app.fjv.constants import APP_NAME, APP_VERSION
from app.fjv.imagehost import ImageHostError, LocalImageHost

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return {"name": APP_NAME, "version": APP_VERSION, "status": "OK"}


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/uploads/<path:key>")
def uploaded_image(key: str):
    """Serves images stored by the local image host backend."""
    host = current_app.extensions.get("image_host")
    if not isinstance(host, LocalImageHost):
        abort(404)
    try:
        path = host.open_path(key)
    except ImageHostError:
        abort(404)
    if not path.is_file():
        abort(404)
    return send_file(path, max_age=3600)
