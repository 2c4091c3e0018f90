"""
Shared fixtures: an isolated store/registry/router per test and a fake
connection that records every frame pushed to it.
"""
import json
import random

import pytest

from dispatch import ProtocolRouter
from store import SessionStore
from ws import Connection, ConnectionManager


class FakeConnection(Connection):
    """Connection whose outbox is a plain list of decoded frames."""

    def __init__(self):
        super().__init__()
        self.sent: list[dict] = []

    def push(self, text: str) -> None:
        if self.closed:
            return
        self.sent.append(json.loads(text))

    def last(self, msg_type: str) -> dict | None:
        for msg in reversed(self.sent):
            if msg.get("type") == msg_type:
                return msg
        return None

    def all(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent if m.get("type") == msg_type]

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]

    def clear(self) -> None:
        self.sent.clear()


def frame(**payload) -> str:
    return json.dumps(payload)


@pytest.fixture
def store():
    return SessionStore(rng=random.Random(1234))


@pytest.fixture
def manager():
    return ConnectionManager()


@pytest.fixture
def router(store, manager):
    return ProtocolRouter(store, manager)


@pytest.fixture
def connect(manager):
    """Register a fake connection, optionally already identified."""
    def _connect(role: str | None = None) -> FakeConnection:
        conn = manager.register(FakeConnection())
        if role is not None:
            manager.identify(conn, role)
        return conn
    return _connect


@pytest.fixture
def hosted(router, connect):
    """A host with a created game: returns (host connection, code)."""
    def _hosted(question="Pick a color", options=("Red", "Blue")):
        host = connect("host")
        router.handle(host, frame(type="host:create_game", question=question, options=list(options)))
        code = host.last("host:game_created")["code"]
        host.clear()
        return host, code
    return _hosted


@pytest.fixture
def joined(router, connect):
    """A player on the roster of ``code``; both outboxes start empty."""
    def _joined(code: str, name: str = "Ann") -> FakeConnection:
        player = connect("player")
        router.handle(player, frame(type="player:join", code=code, name=name))
        assert player.last("player:joined") is not None
        player.clear()
        router.store.lookup(code).host.clear()
        return player
    return _joined
