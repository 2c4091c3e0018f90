"""
HTTP + WebSocket routes.

Endpoints:
  WS   /ws                → the poll protocol (host and player clients)
  GET  /api/health        → health check for load balancers / monitoring
  GET  /api/games/{code}  → lets the join form check a code before connecting
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect

from config import settings

logger = logging.getLogger("live-poll.routes")
router = APIRouter()


# ── REST endpoints ───────────────────────────────────────────────────────────

@router.get("/api/health")
async def health_check(request: Request):
    """Lightweight health probe for ALB / monitoring."""
    return {
        "status": "ok",
        "sessions": len(request.app.state.store),
        "ws_clients": request.app.state.manager.count,
    }


@router.get("/api/games/{code}")
async def get_game(code: str, request: Request):
    session = request.app.state.store.lookup(code)
    if session is None:
        raise HTTPException(status_code=404, detail="No game found with that code.")
    return {
        "code": session.code,
        "state": session.state.value,
        "players": len(session.players),
    }


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@router.websocket(settings.WS_PATH)
async def websocket_endpoint(ws: WebSocket):
    """
    One connection per host or player client. Every frame goes to the
    protocol router; the close is handled as a lifecycle event, not an error.
    """
    manager = ws.app.state.manager
    dispatcher = ws.app.state.dispatcher

    conn = await manager.connect(ws)
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            # Binary frames are parsed like text; undecodable ones fail as bad JSON
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            dispatcher.handle(conn, raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS connection error on %r", conn)
    finally:
        dispatcher.disconnect(conn)
        await manager.disconnect(conn)
