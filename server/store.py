"""
Session store — the live sessions, keyed by join code.

In-memory only; everything is lost on restart. One store is built per app
and handed to the protocol router, so tests can run as many independent
stores as they like.
"""

from __future__ import annotations

import logging
import random
from typing import Any

from config import Settings, settings
from session import Session

logger = logging.getLogger("live-poll.store")


class SessionStore:
    """Owns creation, lookup and destruction of sessions."""

    def __init__(self, cfg: Settings = settings,
                 rng: random.Random | None = None) -> None:
        self.cfg = cfg
        self._sessions: dict[str, Session] = {}
        self._low = 10 ** (cfg.CODE_DIGITS - 1)
        self._high = 10 ** cfg.CODE_DIGITS - 1
        self._rng = rng or random.SystemRandom()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, code: object) -> bool:
        return code in self._sessions

    def generate_code(self) -> str:
        """Draw fixed-width codes until one is not in use by a live session."""
        while True:
            code = str(self._rng.randint(self._low, self._high))
            if code not in self._sessions:
                return code

    def create(self, host: Any, question: str, options: list[str]) -> Session:
        """Validate the poll and register a new lobby session for ``host``."""
        session = Session(self.generate_code(), host, question, options, self.cfg)
        self._sessions[session.code] = session
        logger.info("Session %s created — %d live", session.code, len(self._sessions))
        return session

    def lookup(self, code: str) -> Session | None:
        return self._sessions.get(code)

    def destroy(self, code: str) -> Session | None:
        """Drop a session. Callers notify its players first."""
        session = self._sessions.pop(code, None)
        if session is not None:
            logger.info("Session %s destroyed — %d live", code, len(self._sessions))
        return session
