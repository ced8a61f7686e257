import logging
from enum import Enum
from typing import Union

from ballot import messages
from ballot.errors import AlreadyVoted, InvalidCandidate, VoteError
from ballot.messages import RequestTally, Vote
from ballot.registry import SessionRegistry
from ballot.tally import TallyStore

from .broadcaster import Broadcaster, send_to


class SessionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class SessionHandler:
    """Per-connection state machine: Connecting -> Open -> Closed.

    Inbound frames are handled one at a time, in arrival order. Every
    rejection is answered with an ``error`` frame to this session only.
    """

    def __init__(self, session_id: str, tally: TallyStore, registry: SessionRegistry, broadcaster: Broadcaster) -> None:
        self.session_id = session_id
        self.tally = tally
        self.registry = registry
        self.broadcaster = broadcaster
        self.state = SessionState.CONNECTING

    @property
    def short_id(self) -> str:
        return self.session_id[:8]

    async def open(self) -> None:
        """Move to Open and send the welcome frame."""
        if self.state is not SessionState.CONNECTING:
            return
        self.state = SessionState.OPEN
        await self._reply(messages.welcome(self.session_id, self.tally.candidates, self.tally.snapshot()))

    async def handle(self, raw: Union[str, bytes]) -> None:
        if self.state is not SessionState.OPEN:
            return
        try:
            msg = messages.decode(raw)
            logging.debug('Received %s from %s', type(msg).__name__, self.short_id)
            if isinstance(msg, Vote):
                await self.on_vote(msg)
            elif isinstance(msg, RequestTally):
                await self.on_request_tally()
        except VoteError as err:
            logging.info('Rejected message from %s: %s', self.short_id, err.message)
            await self._reply(messages.error(err))

    async def on_vote(self, vote: Vote) -> None:
        if self.registry.has_voted(self.session_id):
            raise AlreadyVoted()
        # validate before marking so a rejected vote never sets the flag
        if not self.tally.is_candidate(vote.candidate):
            raise InvalidCandidate()
        if not self.registry.mark_voted(self.session_id):
            raise AlreadyVoted()
        snapshot = self.tally.increment(vote.candidate)
        logging.info('Vote recorded: %s voted for %s', self.short_id, vote.candidate)
        logging.info('Current tally: %s', dict(snapshot))

        await self._reply(messages.vote_confirmed(vote.candidate))
        await self.broadcaster.broadcast_tally()

    async def on_request_tally(self) -> None:
        await self._reply(messages.tally_update(self.tally.snapshot()))

    def close(self) -> None:
        """Transport went away: drop the session. Idempotent."""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self.registry.unregister(self.session_id)

    async def _reply(self, data: str) -> bool:
        if self.state is not SessionState.OPEN:
            return False
        session = self.registry.get(self.session_id)
        if session is None:
            return False
        return await send_to(session, data)
