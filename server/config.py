"""
Application configuration.

Only deployment-critical values come from env vars (port, origins, assets).
Poll rules are hardcoded defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from dotenv import load_dotenv

_server_dir = Path(__file__).resolve().parent

# Load .env from the server directory
load_dotenv(_server_dir / ".env")


class Settings:
    # ── Hardcoded defaults (not in .env) ─────────────────────────────────
    HOST: str = "0.0.0.0"
    WS_PATH: str = "/ws"

    # Poll rules
    CODE_DIGITS: int = 6            # join codes are 100000..999999
    MIN_OPTIONS: int = 2
    MAX_OPTIONS: int = 6            # extra options are dropped, not rejected
    MAX_NAME_LENGTH: int = 40

    # ── Deployment-critical (from .env) ──────────────────────────────────
    PORT: int = int(os.getenv("PORT", "3000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    CORS_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
        ).split(",")
        if origin.strip()
    ]

    # Front-end assets; mounted at / only when the directory exists
    STATIC_DIR: Path = Path(os.getenv("STATIC_DIR", str(_server_dir / "public")))


settings = Settings()
