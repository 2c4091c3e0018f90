"""
Session state machine — one poll's full lifecycle.

States:
  lobby   → host is editing; players wait
  active  → question is live, each player may vote once
  ended   → final tally is out; host may start again or edit

Every mutation here is synchronous and in-memory, so one intent is applied
completely before the next one is looked at. The tally is never stored; it
is recomputed from the roster whenever someone asks for it.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from config import Settings, settings
from errors import NotAuthorized, StateConflict, ValidationFailed
from protocol import PlayerView

logger = logging.getLogger("live-poll.session")


class PollState(str, enum.Enum):
    LOBBY = "lobby"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass(eq=False)
class Player:
    id: str
    name: str
    connection: Any
    has_voted: bool = False
    choice_index: int | None = None

    def reset_vote(self) -> None:
        self.has_voted = False
        self.choice_index = None


def normalize_poll(
    question: str,
    options: list[str],
    max_options: int = settings.MAX_OPTIONS,
    min_options: int = settings.MIN_OPTIONS,
) -> tuple[str, list[str]]:
    """
    Trim the question and options, drop blank options and keep at most
    ``max_options`` of what is left. Raises ValidationFailed if the result
    is not a usable poll.
    """
    question = question.strip()
    if not question:
        raise ValidationFailed("Please enter a question for the poll.")

    kept = [option.strip() for option in options if option.strip()]
    if len(kept) < min_options:
        raise ValidationFailed("Provide at least two non-empty answer options.")
    return question, kept[:max_options]


class Session:
    """A single poll, owned by exactly one host connection."""

    def __init__(self, code: str, host: Any, question: str, options: list[str],
                 cfg: Settings = settings) -> None:
        self.code = code
        self.host = host
        self.cfg = cfg
        self.question, self.options = self._normalize(question, options)
        self.state = PollState.LOBBY
        self.players: dict[str, Player] = {}

    def __repr__(self) -> str:
        return f"<Session {self.code} {self.state.value} players={len(self.players)}>"

    def _normalize(self, question: str, options: list[str]) -> tuple[str, list[str]]:
        return normalize_poll(question, options, self.cfg.MAX_OPTIONS, self.cfg.MIN_OPTIONS)

    @property
    def is_active(self) -> bool:
        return self.state is PollState.ACTIVE

    # ── Host transitions ─────────────────────────────────────────────────

    def update(self, question: str, options: list[str]) -> None:
        """Replace the poll and send everyone back to the lobby."""
        self.question, self.options = self._normalize(question, options)
        self.state = PollState.LOBBY
        self._reset_votes()
        logger.info("Session %s poll updated (%d options)", self.code, len(self.options))

    def start(self) -> None:
        if self.state is PollState.ACTIVE:
            raise StateConflict("A poll is already in progress.")
        self._reset_votes()
        self.state = PollState.ACTIVE
        logger.info("Session %s poll started — %d players", self.code, len(self.players))

    def end(self) -> list[int]:
        if self.state is not PollState.ACTIVE:
            raise StateConflict("The poll is not currently running.")
        self.state = PollState.ENDED
        results = self.tally()
        logger.info("Session %s poll ended — results=%s", self.code, results)
        return results

    def _reset_votes(self) -> None:
        for player in self.players.values():
            player.reset_vote()

    # ── Roster ───────────────────────────────────────────────────────────

    def add_player(self, name: str, connection: Any) -> Player:
        player = Player(
            id=uuid.uuid4().hex,
            name=name.strip()[: self.cfg.MAX_NAME_LENGTH],
            connection=connection,
        )
        self.players[player.id] = player
        logger.info("Session %s: %r joined (%d players)", self.code, player.name, len(self.players))
        return player

    def remove_player(self, player_id: str) -> Player | None:
        player = self.players.pop(player_id, None)
        if player is not None:
            logger.info("Session %s: %r left (%d players)", self.code, player.name, len(self.players))
        return player

    def roster(self) -> list[PlayerView]:
        return [
            PlayerView(id=p.id, name=p.name, has_voted=p.has_voted)
            for p in self.players.values()
        ]

    # ── Voting ───────────────────────────────────────────────────────────

    def record_vote(self, player_id: str, choice_index: int) -> Player:
        """
        Record one vote. Checked in order: poll is open, voter is on the
        roster, voter has not voted this round, index names an option.
        """
        if self.state is not PollState.ACTIVE:
            raise StateConflict("Voting is not open at the moment.")

        player = self.players.get(player_id)
        if player is None:
            raise NotAuthorized("You are not part of this game.")
        if player.has_voted:
            raise ValidationFailed("You have already voted in this poll.")
        if not 0 <= choice_index < len(self.options):
            raise ValidationFailed("Please select a valid option.")

        player.has_voted = True
        player.choice_index = choice_index
        return player

    def tally(self) -> list[int]:
        counts = [0] * len(self.options)
        for player in self.players.values():
            if player.choice_index is not None:
                counts[player.choice_index] += 1
        return counts
