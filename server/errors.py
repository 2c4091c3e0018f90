"""
Error taxonomy for poll intents.

Every error is reported to the sending connection only, as
``{"type": "error", "message": ...}``, and never changes any state.
"""

from __future__ import annotations


class PollError(Exception):
    """Base class; carries the human-readable reason sent to the client."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MalformedMessage(PollError):
    """Frame is not JSON, not an object, or has an unknown ``type``."""


class NotAuthorized(PollError):
    """Wrong role for the intent, or no session membership yet."""


class ValidationFailed(PollError):
    """Payload is well-formed but its values are unusable."""


class StateConflict(PollError):
    """Intent does not fit the session's current phase."""
