import asyncio
import logging

from ballot import messages
from ballot.errors import DeliveryFailure
from ballot.registry import Session, SessionRegistry
from ballot.tally import TallyStore


async def _deliver(session: Session, data: str) -> None:
    try:
        await session.connection.send(data)
    except Exception as exc:
        raise DeliveryFailure(session.id, exc) from exc


async def send_to(session: Session, data: str) -> bool:
    """Send one frame to `session`; a failed send is logged and reported as False."""
    if not session.open:
        return False
    try:
        await _deliver(session, data)
        return True
    except DeliveryFailure as failure:
        logging.warning('send_to: %s', failure.message, exc_info=failure)
        return False


class Broadcaster:
    """Pushes the current tally to every open session."""

    def __init__(self, tally: TallyStore, registry: SessionRegistry) -> None:
        self.tally = tally
        self.registry = registry

    async def broadcast_tally(self) -> int:
        """Deliver one tally snapshot to all open sessions.

        Returns how many sessions actually received it. Sessions that close
        while the broadcast is in flight are skipped or fail quietly.
        """
        data = messages.tally_update(self.tally.snapshot())
        delivered = await self.broadcast(data)
        logging.info('Tally broadcast to %d clients', delivered)
        return delivered

    async def broadcast(self, data: str) -> int:
        sessions = self.registry.active_sessions()
        if not sessions:
            logging.debug('broadcast: no open sessions')
            return 0
        results = await asyncio.gather(*(send_to(s, data) for s in sessions))
        return sum(1 for ok in results if ok)
