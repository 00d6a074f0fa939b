from __future__ import annotations

import urllib.parse
from dataclasses import dataclass

from app.fjv.httpclient import HttpError, request_json


class OAuthError(RuntimeError):
    pass


@dataclass(frozen=True)
class OAuthProfile:
    provider: str
    subject: str
    email: str | None
    nombre: str
    apellido: str
    foto: str | None
    email_verificado: bool


@dataclass(frozen=True)
class OAuthClient:
    """Authorization-code flow against an OpenID Connect style provider."""

    provider: str
    client_id: str
    client_secret: str
    callback_url: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scope: str
    timeout_seconds: float = 10.0

    def authorization_url(self, state: str) -> str:
        query = urllib.parse.urlencode(
            {
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": self.callback_url,
                "scope": self.scope,
                "state": state,
            }
        )
        return f"{self.authorize_url}?{query}"

    def exchange_code(self, code: str) -> str:
        try:
            j = request_json(
                "POST",
                self.token_url,
                form={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.callback_url,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                timeout=self.timeout_seconds,
                retries=0,
            )
        except HttpError as e:
            raise OAuthError(f"{self.provider} token exchange failed: {e}") from e
        token = j.get("access_token")
        if not token:
            raise OAuthError(f"{self.provider} token response had no access_token")
        return str(token)

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        try:
            j = request_json(
                "GET",
                self.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout_seconds,
            )
        except HttpError as e:
            raise OAuthError(f"{self.provider} userinfo failed: {e}") from e
        subject = j.get("sub") or j.get("id")
        if not subject:
            raise OAuthError(f"{self.provider} userinfo had no subject")
        nombre = j.get("given_name") or (j.get("name") or "").split(" ")[0] or "Usuario"
        apellido = j.get("family_name") or ""
        email = (j.get("email") or "").strip().lower() or None
        return OAuthProfile(
            provider=self.provider,
            subject=str(subject),
            email=email,
            nombre=nombre,
            apellido=apellido,
            foto=j.get("picture"),
            email_verificado=bool(j.get("email_verified", False)),
        )

    def authenticate(self, code: str) -> OAuthProfile:
        return self.fetch_profile(self.exchange_code(code))


def oauth_clients_from_config(config: dict) -> dict[str, OAuthClient]:
    timeout = float(config.get("HTTP_TIMEOUT_SECONDS") or 10.0)
    clients: dict[str, OAuthClient] = {}
    if config.get("GOOGLE_CLIENT_ID") and config.get("GOOGLE_CLIENT_SECRET"):
        clients["google"] = OAuthClient(
            provider="google",
            client_id=config["GOOGLE_CLIENT_ID"],
            client_secret=config["GOOGLE_CLIENT_SECRET"],
            callback_url=config.get("GOOGLE_CALLBACK_URL") or "",
            authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
            token_url="https://oauth2.googleapis.com/token",
            userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
            scope="openid profile email",
            timeout_seconds=timeout,
        )
    if config.get("LINKEDIN_CLIENT_ID") and config.get("LINKEDIN_CLIENT_SECRET"):
        clients["linkedin"] = OAuthClient(
            provider="linkedin",
            client_id=config["LINKEDIN_CLIENT_ID"],
            client_secret=config["LINKEDIN_CLIENT_SECRET"],
            callback_url=config.get("LINKEDIN_CALLBACK_URL") or "",
            authorize_url="https://www.linkedin.com/oauth/v2/authorization",
            token_url="https://www.linkedin.com/oauth/v2/accessToken",
            userinfo_url="https://api.linkedin.com/v2/userinfo",
            scope="openid profile email",
            timeout_seconds=timeout,
        )
    return clients
