from __future__ import annotations

import json
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any


class HttpError(RuntimeError):
    def __init__(self, msg: str, *, status: int | None = None, body: str = ""):
        super().__init__(msg)
        self.status = status
        self.body = body


class HttpRateLimited(HttpError):
    pass


def request_json(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json_body: Any = None,
    form: dict[str, Any] | None = None,
    timeout: float = 10.0,
    retries: int = 2,
) -> dict[str, Any]:
    """
    Small JSON-over-HTTP helper used by the MercadoPago, ImgBB and OAuth clients.
    Every call carries an explicit timeout. 429, 5xx and network errors are retried with a short
    backoff; the last failure is raised as HttpError.
    """
    if params:
        url += ("&" if "?" in url else "?") + urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})

    data: bytes | None = None
    all_headers = {"Accept": "application/json"}
    if json_body is not None:
        data = json.dumps(json_body).encode("utf-8")
        all_headers["Content-Type"] = "application/json"
    elif form is not None:
        data = urllib.parse.urlencode(form).encode("utf-8")
        all_headers["Content-Type"] = "application/x-www-form-urlencoded"
    all_headers.update(headers or {})

    host = urllib.parse.urlsplit(url).netloc
    last_err: Exception | None = None
    for attempt in range(retries + 1):
        retry_left = attempt < retries
        try:
            req = urllib.request.Request(url, data=data, method=method.upper())
            for k, v in all_headers.items():
                req.add_header(k, v)
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                raw = resp.read()
                if not raw:
                    return {}
                try:
                    parsed = json.loads(raw.decode("utf-8"))
                except ValueError as e:
                    raise HttpError(f"Invalid JSON from {host}") from e
                return parsed if isinstance(parsed, dict) else {"data": parsed}
        except urllib.error.HTTPError as e:
            if e.code == 429:
                last_err = HttpRateLimited("Rate limited (429)", status=429)
                if retry_left:
                    time.sleep(min(2 * (attempt + 1), 10))
                continue
            try:
                body = e.read().decode("utf-8", errors="ignore")
            except Exception:
                body = ""
            err = HttpError(f"HTTP {e.code} from {host}: {body[:300]}", status=e.code, body=body)
            if e.code >= 500 and retry_left:
                last_err = err
                time.sleep(min(1 * (attempt + 1), 5))
                continue
            raise err from e
        except (urllib.error.URLError, TimeoutError, ConnectionError) as e:
            last_err = e
            if retry_left:
                time.sleep(min(1 * (attempt + 1), 5))
            continue
    if isinstance(last_err, HttpError):
        raise last_err
    raise HttpError(f"Request to {host} failed after retries: {last_err}")
