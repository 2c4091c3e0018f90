"""
Wire protocol — JSON text frames in both directions.

Inbound frames are decoded in two steps so the router can check the sender's
role before looking at the payload:

  decode(raw)          → (intent class, raw dict)   or MalformedMessage
  validate(cls, data)  → typed intent               or ValidationFailed

Outbound messages are models too; ``encode`` dumps them with camelCase keys.
"""

from __future__ import annotations

import json
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError
from pydantic.alias_generators import to_camel

from errors import MalformedMessage, ValidationFailed

HOST = "host"
PLAYER = "player"
ROLES = (HOST, PLAYER)


class _Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Inbound (actor → server) ─────────────────────────────────────────────────

class Intent(_Message):
    # Role the sender must hold; None means any connection may send it
    actor: ClassVar[str | None] = None
    # Reason sent back when the payload fails validation
    invalid: ClassVar[str] = "Invalid message payload."


class Identify(Intent):
    type: Literal["identify"]
    role: Literal["host", "player"]

    invalid: ClassVar[str] = "Unknown role specified."


class CreateGame(Intent):
    type: Literal["host:create_game"]
    question: StrictStr
    options: list[StrictStr]

    actor: ClassVar[str | None] = HOST
    invalid: ClassVar[str] = "A question and at least two options are required to start a poll."


class UpdatePoll(Intent):
    type: Literal["host:update_poll"]
    question: StrictStr
    options: list[StrictStr]

    actor: ClassVar[str | None] = HOST
    invalid: ClassVar[str] = "A question and at least two options are required."


class StartPoll(Intent):
    type: Literal["host:start_poll"]

    actor: ClassVar[str | None] = HOST


class EndPoll(Intent):
    type: Literal["host:end_poll"]

    actor: ClassVar[str | None] = HOST


class JoinGame(Intent):
    type: Literal["player:join"]
    code: StrictStr
    name: StrictStr

    actor: ClassVar[str | None] = PLAYER
    invalid: ClassVar[str] = "A game code and display name are required."


class Vote(Intent):
    type: Literal["player:vote"]
    choice_index: StrictInt

    actor: ClassVar[str | None] = PLAYER
    invalid: ClassVar[str] = "Please select a valid option."


# Closed set of recognised inbound tags
INTENTS: dict[str, type[Intent]] = {
    "identify": Identify,
    "host:create_game": CreateGame,
    "host:update_poll": UpdatePoll,
    "host:start_poll": StartPoll,
    "host:end_poll": EndPoll,
    "player:join": JoinGame,
    "player:vote": Vote,
}


def decode(raw: str | bytes) -> tuple[type[Intent], dict]:
    """Parse a frame and resolve its ``type`` tag to an intent class."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise MalformedMessage("Invalid JSON payload received.")
    if not isinstance(data, dict):
        raise MalformedMessage("Invalid JSON payload received.")

    tag = data.get("type")
    intent_cls = INTENTS.get(tag) if isinstance(tag, str) else None
    if intent_cls is None:
        raise MalformedMessage("Unknown message type received.")
    return intent_cls, data


def validate(intent_cls: type[Intent], data: dict) -> Intent:
    try:
        return intent_cls.model_validate(data)
    except ValidationError:
        raise ValidationFailed(intent_cls.invalid)


# ── Outbound (server → actor) ────────────────────────────────────────────────

class PlayerView(_Message):
    id: str
    name: str
    has_voted: bool


class Identified(_Message):
    type: Literal["identified"] = "identified"
    role: str


class HostGameCreated(_Message):
    type: Literal["host:game_created"] = "host:game_created"
    code: str
    question: str
    options: list[str]


class HostPollUpdated(_Message):
    type: Literal["host:poll_updated"] = "host:poll_updated"
    question: str
    options: list[str]


class HostPlayersUpdated(_Message):
    type: Literal["host:players_updated"] = "host:players_updated"
    players: list[PlayerView]


class HostPollStarted(_Message):
    type: Literal["host:poll_started"] = "host:poll_started"


class HostPollProgress(_Message):
    type: Literal["host:poll_progress"] = "host:poll_progress"
    results: list[int]


class HostPollResults(_Message):
    type: Literal["host:poll_results"] = "host:poll_results"
    results: list[int]


class PlayerJoined(_Message):
    type: Literal["player:joined"] = "player:joined"
    code: str
    # Only filled in while a round is running
    question: str | None = None
    options: list[str] | None = None


class PollStart(_Message):
    type: Literal["poll:start"] = "poll:start"
    question: str
    options: list[str]


class PlayerVoted(_Message):
    type: Literal["player:voted"] = "player:voted"
    choice_index: int


class PollResults(_Message):
    type: Literal["poll:results"] = "poll:results"
    question: str
    options: list[str]
    results: list[int]


class PollReset(_Message):
    type: Literal["poll:reset"] = "poll:reset"
    message: str


class GameEnded(_Message):
    type: Literal["game:ended"] = "game:ended"
    message: str


class ErrorMessage(_Message):
    type: Literal["error"] = "error"
    message: str


def encode(message: _Message) -> str:
    return message.model_dump_json(by_alias=True)
