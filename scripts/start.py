#!/usr/bin/env python3
"""
Container entrypoint: release phase (migrations + seed), then gunicorn.

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DEFAULT_PORT = 3000


def resolve_port() -> int:
    raw = (os.environ.get("PORT") or "").strip()
    if not raw:
        print(f"WARNING: PORT not set, using default {DEFAULT_PORT}", flush=True)
        return DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError:
        port = 0
    if not 1 <= port <= 65535:
        print(f"ERROR: Invalid PORT value '{raw}'. Must be integer 1-65535.", flush=True)
        sys.exit(1)
    return port


def gunicorn_argv(port: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", os.environ.get("WEB_CONCURRENCY", "2"),
        "--timeout", "60",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = resolve_port()

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    argv = gunicorn_argv(port)
    print(f"=== Starting gunicorn on 0.0.0.0:{port} ===", flush=True)
    # exec keeps gunicorn as PID 1 so it receives signals directly
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
