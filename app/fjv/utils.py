from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from app.fjv.errors import ValidationError


def parse_date(value, field: str = "fecha") -> date | None:
    """Parse a YYYY-MM-DD string (or an ISO datetime prefix). Empty -> None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        raise ValidationError(f"Fecha inválida en '{field}'. Use el formato AAAA-MM-DD.")


def parse_int(value, field: str = "id") -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Valor numérico inválido en '{field}'.")


def parse_decimal(value, field: str = "monto") -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Importe inválido en '{field}'.")


def parse_bool(value) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in ("1", "true", "si", "sí", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    return None


def clean_str(value) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def add_one_year(d: date) -> date:
    """Same day next year; Feb 29 rolls over to Mar 1."""
    try:
        return d.replace(year=d.year + 1)
    except ValueError:
        return date(d.year + 1, 3, 1)


def page_params(args, *, default_limit: int = 50, max_limit: int = 500) -> tuple[int, int]:
    page = parse_int(args.get("page"), "page") or 1
    limit = parse_int(args.get("limit"), "limit") or default_limit
    page = max(page, 1)
    limit = min(max(limit, 1), max_limit)
    return page, limit
