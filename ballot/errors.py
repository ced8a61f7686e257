"""Error taxonomy for the vote server.

Errors that end up in front of a client carry the text sent back in the
``error`` frame as their ``message`` attribute.
"""

from typing import Optional


class VoteError(Exception):
    """Base class for every error raised by the vote server."""

    message: str = "Vote server error"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ConfigError(VoteError, ValueError):
    """Startup configuration is unusable (empty/duplicate candidates, bad port)."""

    message = "Invalid configuration"


class MalformedMessage(VoteError):
    message = "Invalid message format"


class UnknownMessageType(VoteError):
    message = "Unknown message type"

    def __init__(self, message_type: object = None) -> None:
        self.message_type = message_type
        super().__init__()


class AlreadyVoted(VoteError):
    message = "You have already voted!"


class InvalidCandidate(VoteError):
    message = "Invalid candidate selected!"


class UnknownCandidate(VoteError, KeyError):
    """Raised by the tally store when asked to count a non-candidate."""

    def __init__(self, candidate: object) -> None:
        self.candidate = candidate
        super().__init__(f"Unknown candidate: {candidate!r}")

    def __str__(self) -> str:
        return self.message


class DeliveryFailure(VoteError):
    """A send to one session failed; never propagated to other sessions."""

    def __init__(self, session_id: str, cause: BaseException) -> None:
        self.session_id = session_id
        self.cause = cause
        super().__init__(f"Delivery to {session_id[:8]} failed: {cause}")
