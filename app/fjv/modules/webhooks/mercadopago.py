from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from app.fjv.httpclient import HttpError, request_json

logger = logging.getLogger(__name__)


class MercadoPagoError(RuntimeError):
    pass


@dataclass(frozen=True)
class MercadoPagoClient:
    access_token: str
    api_base: str = "https://api.mercadopago.com"
    notification_url: str | None = None
    timeout_seconds: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.access_token)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        if not self.configured:
            raise MercadoPagoError("MP_ACCESS_TOKEN is not configured.")
        url = f"{self.api_base.rstrip('/')}{path}"
        try:
            return request_json(method, url, headers=self._headers(), timeout=self.timeout_seconds, **kwargs)
        except HttpError as e:
            logger.warning("MercadoPago %s %s failed: %s", method, path, e)
            raise MercadoPagoError(str(e)) from e

    def get_payment(self, payment_id: str) -> dict[str, Any]:
        # Called inline from the webhook; a single attempt keeps the request within one timeout.
        return self._request("GET", f"/v1/payments/{payment_id}", retries=0)

    def create_preference(
        self,
        *,
        title: str,
        amount: float,
        external_reference: str,
        back_urls: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "items": [
                {
                    "title": title,
                    "quantity": 1,
                    "currency_id": "ARS",
                    "unit_price": round(amount, 2),
                }
            ],
            "external_reference": external_reference,
        }
        if back_urls:
            body["back_urls"] = back_urls
            body["auto_return"] = "approved"
        if self.notification_url:
            body["notification_url"] = self.notification_url
        # Preference creation is not idempotent on the provider side.
        return self._request("POST", "/checkout/preferences", json_body=body, retries=0)


def mercadopago_from_config(config: dict) -> MercadoPagoClient:
    return MercadoPagoClient(
        access_token=(config.get("MP_ACCESS_TOKEN") or "").strip(),
        api_base=(config.get("MP_API_BASE") or "https://api.mercadopago.com").strip(),
        notification_url=(config.get("MP_NOTIFICATION_URL") or "").strip() or None,
        timeout_seconds=float(config.get("HTTP_TIMEOUT_SECONDS") or 10.0),
    )
