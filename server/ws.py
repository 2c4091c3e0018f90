"""
WebSocket connection manager.

Handles:
  - Accepting / removing client connections
  - Remembering each connection's declared role and the session it created
    or joined (only the protocol router writes these)
  - A per-connection writer task, so pushing a message never waits on the
    network and frames to one client always go out in the order queued
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import WebSocket

from errors import NotAuthorized, ValidationFailed
from protocol import ROLES

logger = logging.getLogger("live-poll.ws")


class Connection:
    """One open WebSocket plus what the server knows about its actor."""

    def __init__(self, websocket: WebSocket | None = None) -> None:
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.role: str | None = None
        self.session_code: str | None = None
        self.player_id: str | None = None
        self.closed = False
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._writer: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<Connection {self.id[:8]} role={self.role} session={self.session_code}>"

    def push(self, text: str) -> None:
        """Queue a frame for delivery. Closed connections are skipped."""
        if self.closed:
            return
        self._outbox.put_nowait(text)

    def start(self) -> None:
        self._writer = asyncio.create_task(self.pump())

    async def pump(self) -> None:
        """Writer task: drain the outbox to the socket until it fails."""
        try:
            while True:
                text = await self._outbox.get()
                await self.websocket.send_text(text)
        except Exception:
            logger.debug("WS write failed on %r — marking closed", self)
            self.closed = True

    async def close(self) -> None:
        self.closed = True
        if self._writer is None:
            return
        self._writer.cancel()
        try:
            await self._writer
        except asyncio.CancelledError:
            pass
        self._writer = None


class ConnectionManager:
    """Registry of open connections and their declared roles."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    @property
    def count(self) -> int:
        return len(self._connections)

    def __iter__(self):
        return iter(list(self._connections.values()))

    async def connect(self, ws: WebSocket) -> Connection:
        await ws.accept()
        conn = self.register(Connection(ws))
        conn.start()
        return conn

    def register(self, conn: Connection) -> Connection:
        self._connections[conn.id] = conn
        logger.info("WS connected  — %d active", self.count)
        return conn

    async def disconnect(self, conn: Connection) -> None:
        self._connections.pop(conn.id, None)
        await conn.close()
        logger.info("WS disconnected — %d active", self.count)

    async def close_all(self) -> None:
        for conn in self:
            await self.disconnect(conn)

    # ── Actor bookkeeping ────────────────────────────────────────────────

    def identify(self, conn: Connection, role: str) -> None:
        """Fix the connection's role. It cannot be changed afterwards."""
        if role not in ROLES:
            raise ValidationFailed("Unknown role specified.")
        if conn.role is not None and conn.role != role:
            raise NotAuthorized(f"This connection is already identified as a {conn.role}.")
        conn.role = role
        logger.debug("%r identified", conn)

    def bind_session(self, conn: Connection, code: str, player_id: str | None = None) -> None:
        conn.session_code = code
        conn.player_id = player_id
