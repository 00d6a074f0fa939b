import pytest

from app.fjv import create_app


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_index_reports_name_and_version(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json["status"] == "OK"
    assert r.json["version"]


def test_unknown_route_is_json_404(client):
    r = client.get("/api/no-existe")
    assert r.status_code == 404
    assert r.json == {"status": "0", "msg": "Recurso no encontrado."}


def test_cors_headers_and_preflight(client):
    r = client.options("/api/clubs", headers={"Origin": "http://localhost:4200"})
    assert r.status_code == 204
    assert r.headers["Access-Control-Allow-Origin"] == "http://localhost:4200"
    assert "Authorization" in r.headers["Access-Control-Allow-Headers"]

    r = client.get("/api/clubs")
    assert r.headers["Access-Control-Allow-Credentials"] == "true"


def test_production_guardrails(monkeypatch, tmp_path):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    monkeypatch.setenv("SECRET_KEY", "a-strong-secret")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()
