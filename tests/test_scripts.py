import pytest
from sqlalchemy import create_engine
from werkzeug.security import check_password_hash

from app.fjv.constants import DEFAULT_ROLES
from app.fjv.models import Base, Rol, Usuario
from scripts import init_db, release, start
from scripts._db_utils import script_session


def test_seed_is_idempotent(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'seed.db'}"
    engine = create_engine(db_url)
    Base.metadata.create_all(bind=engine)
    engine.dispose()

    monkeypatch.setenv("ADMIN_EMAIL", "Jefa@FJV.org.ar")
    monkeypatch.setenv("ADMIN_PASSWORD", "primera")
    init_db.seed_only(database_url=db_url)
    monkeypatch.setenv("ADMIN_PASSWORD", "segunda")
    init_db.seed_only(database_url=db_url)

    with script_session(db_url) as s:
        assert s.query(Rol).count() == len(DEFAULT_ROLES)
        admin = s.query(Usuario).one()
        assert admin.email == "jefa@fjv.org.ar"
        assert admin.rol.nombre == "admin"
        assert check_password_hash(admin.password_hash, "primera")


def test_release_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        release.release_database_url()

    monkeypatch.setenv("DATABASE_URL", "sqlite:///x.db")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="sqlite"):
        release.release_database_url()


def test_start_port_and_gunicorn_args(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    assert start.resolve_port() == 3000
    monkeypatch.setenv("PORT", "8080")
    assert start.resolve_port() == 8080
    monkeypatch.setenv("PORT", "99999")
    with pytest.raises(SystemExit):
        start.resolve_port()

    argv = start.gunicorn_argv(8080)
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert "0.0.0.0:8080" in argv
