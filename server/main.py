"""
Live Poll — Backend Entry Point

FastAPI application with:
  - WebSocket protocol for hosts and players (create, join, vote, results)
  - In-memory session store keyed by 6-digit join codes
  - Static hosting for the front-end when a public/ directory is present

Run:
    python main.py
    # or
    uvicorn main:app --host 0.0.0.0 --port 3000 --reload
"""

from __future__ import annotations

import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import Settings, settings
from dispatch import ProtocolRouter
from routes import router
from store import SessionStore
from ws import ConnectionManager

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s │ %(name)-22s │ %(levelname)-7s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("live-poll")


# ── Lifespan ─────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""

    # ── Startup ──
    cfg = app.state.settings
    logger.info("WS path   : %s", cfg.WS_PATH)
    logger.info("CORS      : %s", cfg.CORS_ORIGINS)
    logger.info("Static    : %s", cfg.STATIC_DIR if cfg.STATIC_DIR.is_dir() else "(none)")
    logger.info("✅  Live Poll server ready on %s:%d", cfg.HOST, cfg.PORT)

    yield

    # ── Shutdown ──
    await app.state.manager.close_all()
    logger.info("Server shut down cleanly")


# ── App ──────────────────────────────────────────────────────────────────────

def create_app(cfg: Settings = settings) -> FastAPI:
    """Build an app with its own, empty session store."""
    app = FastAPI(
        title="Live Poll API",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.store = SessionStore(cfg)
    app.state.manager = ConnectionManager()
    app.state.dispatcher = ProtocolRouter(app.state.store, app.state.manager)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    # Mounted last so /ws and /api/* win
    if cfg.STATIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=cfg.STATIC_DIR, html=True), name="static")

    return app


app = create_app()


# ── Direct execution ─────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
        log_level=settings.LOG_LEVEL.lower(),
    )
