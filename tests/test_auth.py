from app.fjv.oauth import OAuthProfile

from conftest import ADMIN_EMAIL, PASSWORD, USER_EMAIL


def test_login_returns_token_and_usuario(client):
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": PASSWORD})
    assert r.status_code == 200
    assert r.json["status"] == "1"
    assert r.json["token"]
    assert r.json["usuario"]["email"] == ADMIN_EMAIL
    assert r.json["usuario"]["rol"]["nombre"] == "admin"


def test_login_alias_under_usuario(client):
    r = client.post("/api/usuario/login", json={"email": USER_EMAIL, "password": PASSWORD})
    assert r.status_code == 200
    assert r.json["usuario"]["email"] == USER_EMAIL


def test_login_rejects_bad_credentials(client):
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
    assert r.status_code == 401
    assert r.json["status"] == "0"

    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL})
    assert r.status_code == 400


def test_login_rate_limited_after_repeated_failures(client):
    for _ in range(5):
        client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": PASSWORD})
    assert r.status_code == 429


def test_profile_requires_auth(client, user_headers):
    assert client.get("/api/auth/profile").status_code == 401
    assert client.get("/api/auth/profile", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401

    r = client.get("/api/auth/profile", headers=user_headers)
    assert r.status_code == 200
    assert r.json["usuario"]["email"] == USER_EMAIL


def test_admin_routes_forbidden_for_regular_user(client, user_headers):
    r = client.post("/api/clubs", json={"nombre": "X"}, headers=user_headers)
    assert r.status_code == 403
    assert r.json["status"] == "0"


def test_session_cookie_writes_need_csrf_token(client):
    client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": PASSWORD})
    payload = {"nombre": "Sub-14", "tipo": "Mixto"}

    r = client.post("/api/categorias", json=payload)
    assert r.status_code == 403

    status = client.get("/api/auth/status").json
    assert status["authenticated"] is True
    assert status["method"] == "session"

    r = client.post("/api/categorias", json=payload, headers={"X-CSRF-Token": status["csrfToken"]})
    assert r.status_code == 201


def test_logout_clears_session(client):
    client.post("/api/auth/login", json={"email": USER_EMAIL, "password": PASSWORD})
    assert client.get("/api/auth/status").json["authenticated"] is True
    client.post("/api/auth/logout")
    assert client.get("/api/auth/status").json["authenticated"] is False


def test_oauth_not_configured(client):
    r = client.get("/api/auth/google")
    assert r.status_code == 503


class _FakeOAuth:
    def __init__(self, profile: OAuthProfile):
        self.profile = profile

    def authorization_url(self, state: str) -> str:
        return f"https://accounts.test/auth?state={state}"

    def authenticate(self, code: str) -> OAuthProfile:
        assert code == "the-code"
        return self.profile


def test_google_login_creates_social_user(app, client):
    app.extensions["oauth_clients"] = {
        "google": _FakeOAuth(
            OAuthProfile(
                provider="google",
                subject="g-123",
                email="nuevo@gmail.com",
                nombre="Nuevo",
                apellido="Usuario",
                foto=None,
                email_verificado=True,
            )
        )
    }
    r = client.get("/api/auth/google")
    assert r.status_code == 302
    with client.session_transaction() as sess:
        state = sess["oauth_state_google"]

    r = client.get(f"/api/auth/google/callback?state={state}&code=the-code")
    assert r.status_code == 200
    assert r.json["token"]
    assert r.json["usuario"]["providerType"] == "google"
    assert r.json["usuario"]["rol"]["nombre"] == "usuario_social"


def test_oauth_callback_rejects_bad_state(app, client):
    app.extensions["oauth_clients"] = {"linkedin": _FakeOAuth(None)}
    client.get("/api/auth/linkedin")
    r = client.get("/api/auth/linkedin/callback?state=forged&code=the-code")
    assert r.status_code == 401
