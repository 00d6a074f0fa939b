"""
Daily license-expiry sweep, for a scheduler (cron, platform job).

Marks expired licenses VENCIDO, reactivates renewed ones and cascades the new
state to credentials. Safe to run repeatedly.

Usage:
  python scripts/actualizar_licencias.py [--fecha YYYY-MM-DD]
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.fjv.modules.personas.licencias import actualizar_estado_licencias
from scripts._db_utils import resolve_db_url, script_session


def run_sweep(*, database_url: str | None = None, today: date | None = None) -> dict:
    with script_session(resolve_db_url(database_url)) as s:
        return actualizar_estado_licencias(s, None, today=today)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Recompute license states from their expiry dates.")
    parser.add_argument("--fecha", type=date.fromisoformat, default=None, help="Reference date (default: today)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    result = run_sweep(today=args.fecha)
    print(
        f"Licencias actualizadas: {result['actualizadas']} "
        f"(vencidas={result['vencidas']}, reactivadas={result['reactivadas']}, total={result['totalPersonas']})",
        flush=True,
    )


if __name__ == "__main__":
    main()
