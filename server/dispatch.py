"""
Protocol router — turns inbound frames into session mutations and decides
who hears about them.

For every frame:
  1. decode the JSON and resolve the ``type`` tag
  2. check the role the registry stored for this connection (never a role
     claimed in the payload)
  3. validate the payload
  4. resolve the session this connection created or joined, if needed
  5. mutate the session and fan out the resulting messages

Any PollError along the way is sent back to the sender only, and nothing
has changed by then. Handling is fully synchronous: one frame is applied
completely before the next one is read, across all connections.
"""

from __future__ import annotations

import logging
from typing import Callable

import fanout
from errors import NotAuthorized, PollError, StateConflict, ValidationFailed
from protocol import (
    HOST,
    PLAYER,
    CreateGame,
    EndPoll,
    ErrorMessage,
    GameEnded,
    HostGameCreated,
    HostPlayersUpdated,
    HostPollProgress,
    HostPollResults,
    HostPollStarted,
    HostPollUpdated,
    Identified,
    Identify,
    Intent,
    JoinGame,
    PlayerJoined,
    PlayerVoted,
    PollReset,
    PollResults,
    PollStart,
    StartPoll,
    UpdatePoll,
    Vote,
    decode,
    validate,
)
from session import Session
from store import SessionStore
from ws import Connection, ConnectionManager

logger = logging.getLogger("live-poll.dispatch")

ROLE_MISMATCH: dict[type[Intent], str] = {
    CreateGame: "Only hosts can create games.",
    UpdatePoll: "Only hosts can update polls.",
    StartPoll: "Only hosts can start polls.",
    EndPoll: "Only hosts can end polls.",
    JoinGame: "Only players can join games.",
    Vote: "Only players can vote.",
}

NO_SESSION: dict[type[Intent], str] = {
    UpdatePoll: "Create a game before updating the poll.",
    StartPoll: "Create a game before starting the poll.",
    EndPoll: "Create a game before ending the poll.",
    Vote: "Join a game before voting.",
}

POLL_RESET_MESSAGE = "The host is preparing a new poll. Please wait for the next question."
HOST_LEFT_MESSAGE = "The host has disconnected. The poll has ended."


class ProtocolRouter:
    """The only writer of the session store and of connection bookkeeping."""

    def __init__(self, store: SessionStore, manager: ConnectionManager) -> None:
        self.store = store
        self.manager = manager
        self._handlers: dict[type[Intent], Callable[[Connection, Intent], None]] = {
            Identify: self._identify,
            CreateGame: self._create_game,
            UpdatePoll: self._update_poll,
            StartPoll: self._start_poll,
            EndPoll: self._end_poll,
            JoinGame: self._join,
            Vote: self._vote,
        }

    # ── Entry points ─────────────────────────────────────────────────────

    def handle(self, conn: Connection, raw: str | bytes) -> None:
        logger.debug("%r ← %s", conn, raw)
        try:
            intent_cls, data = decode(raw)
            if intent_cls.actor is not None and conn.role != intent_cls.actor:
                raise NotAuthorized(ROLE_MISMATCH[intent_cls])
            intent = validate(intent_cls, data)
            self._handlers[intent_cls](conn, intent)
        except PollError as exc:
            logger.info("Rejected frame from %r: %s", conn, exc.message)
            fanout.send(conn, ErrorMessage(message=exc.message))

    def disconnect(self, conn: Connection) -> None:
        """
        Clean up after a closed connection. A departing host takes the whole
        session down, telling every player first; a departing player only
        leaves the roster.
        """
        session = self.store.lookup(conn.session_code) if conn.session_code else None
        if session is None:
            return

        if conn.role == HOST and session.host is conn:
            fanout.to_players(session, GameEnded(message=HOST_LEFT_MESSAGE))
            self.store.destroy(session.code)
        elif conn.role == PLAYER and conn.player_id:
            if session.remove_player(conn.player_id) is not None:
                fanout.to_host(session, HostPlayersUpdated(players=session.roster()))

    # ── Helpers ──────────────────────────────────────────────────────────

    def _session_for(self, conn: Connection, intent: Intent) -> Session:
        session = self.store.lookup(conn.session_code) if conn.session_code else None
        if session is None:
            raise NotAuthorized(NO_SESSION[type(intent)])
        return session

    def _joined_session(self, conn: Connection) -> Session | None:
        session = self.store.lookup(conn.session_code) if conn.session_code else None
        if session is not None and conn.player_id in session.players:
            return session
        return None

    # ── Handlers ─────────────────────────────────────────────────────────

    def _identify(self, conn: Connection, intent: Identify) -> None:
        self.manager.identify(conn, intent.role)
        fanout.send(conn, Identified(role=conn.role))

    def _create_game(self, conn: Connection, intent: CreateGame) -> None:
        if conn.session_code and conn.session_code in self.store:
            raise StateConflict("You are already hosting a game.")

        session = self.store.create(conn, intent.question, intent.options)
        self.manager.bind_session(conn, session.code)
        fanout.send(conn, HostGameCreated(
            code=session.code, question=session.question, options=session.options,
        ))

    def _update_poll(self, conn: Connection, intent: UpdatePoll) -> None:
        session = self._session_for(conn, intent)
        session.update(intent.question, intent.options)

        fanout.send(conn, HostPollUpdated(question=session.question, options=session.options))
        fanout.send(conn, HostPlayersUpdated(players=session.roster()))
        fanout.to_players(session, PollReset(message=POLL_RESET_MESSAGE))

    def _start_poll(self, conn: Connection, intent: StartPoll) -> None:
        session = self._session_for(conn, intent)
        session.start()

        fanout.send(conn, HostPlayersUpdated(players=session.roster()))
        fanout.to_players(session, PollStart(question=session.question, options=session.options))
        fanout.send(conn, HostPollStarted())

    def _end_poll(self, conn: Connection, intent: EndPoll) -> None:
        session = self._session_for(conn, intent)
        results = session.end()

        fanout.send(conn, HostPollResults(results=results))
        fanout.to_players(session, PollResults(
            question=session.question, options=session.options, results=results,
        ))

    def _join(self, conn: Connection, intent: JoinGame) -> None:
        code = intent.code.strip()
        name = intent.name.strip()
        if not code or not name:
            raise ValidationFailed(JoinGame.invalid)
        if self._joined_session(conn) is not None:
            raise StateConflict("You have already joined a game.")

        session = self.store.lookup(code)
        if session is None:
            raise ValidationFailed("No game found with that code.")

        player = session.add_player(name, conn)
        self.manager.bind_session(conn, session.code, player.id)

        live = session.is_active
        fanout.send(conn, PlayerJoined(
            code=session.code,
            question=session.question if live else None,
            options=session.options if live else None,
        ))
        fanout.to_host(session, HostPlayersUpdated(players=session.roster()))
        if live:
            fanout.send(conn, PollStart(question=session.question, options=session.options))

    def _vote(self, conn: Connection, intent: Vote) -> None:
        session = self._session_for(conn, intent)
        player = session.record_vote(conn.player_id, intent.choice_index)

        fanout.send(conn, PlayerVoted(choice_index=player.choice_index))
        fanout.to_host(session, HostPlayersUpdated(players=session.roster()))
        fanout.to_host(session, HostPollProgress(results=session.tally()))
