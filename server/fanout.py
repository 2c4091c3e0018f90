"""
Broadcast fan-out — best-effort, fire-and-forget delivery.

Nothing here reports failure: a connection that is already closing is
skipped, and the caller never waits for a frame to reach the wire.
"""

from __future__ import annotations

from pydantic import BaseModel

from protocol import encode
from session import Session


def send(conn, message: BaseModel) -> None:
    conn.push(encode(message))


def to_host(session: Session, message: BaseModel) -> None:
    send(session.host, message)


def to_players(session: Session, message: BaseModel) -> None:
    payload = encode(message)
    for player in list(session.players.values()):
        player.connection.push(payload)
