import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set


def new_session_id() -> str:
    """128-bit random identifier, unique for the lifetime of the process."""
    return uuid.uuid4().hex


@dataclass
class Session:
    """Server-side record of one live connection.

    `connection` is whatever the transport uses to send frames (a websocket
    in production, a fake in tests); the registry never touches it.
    """

    id: str
    connection: Any = None
    remote_address: Any = None
    voted: bool = False
    open: bool = True

    @property
    def short_id(self) -> str:
        return self.id[:8]

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"Session(id={self.short_id!r}, voted={self.voted}, open={self.open})"


class SessionRegistry:
    """Active sessions plus the authoritative set of sessions that have voted.

    The voted set is the single source of truth for one-vote-per-session: a
    session id gets in there only through `mark_voted`, which checks and sets
    in one locked step. Ids stay in the voted set after their session closes.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._voted: Set[str] = set()
        self._lock = threading.Lock()

    def register(self, connection: Any = None, remote_address: Any = None) -> str:
        with self._lock:
            session_id = new_session_id()
            while session_id in self._sessions or session_id in self._voted:
                session_id = new_session_id()
            self._sessions[session_id] = Session(session_id, connection, remote_address)
        return session_id

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def has_voted(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._voted

    def mark_voted(self, session_id: str) -> bool:
        """Flip the session's voted flag false -> true.

        Returns True only when this call performed the transition; False for
        an unknown or closed session or one that has already voted. Callers
        must not touch the tally on False.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not session.open or session_id in self._voted:
                return False
            self._voted.add(session_id)
            session.voted = True
            return True

    def unregister(self, session_id: str) -> None:
        """Close and forget a session. Safe to call more than once."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is not None:
                session.open = False

    def active_sessions(self) -> List[Session]:
        """Snapshot of the sessions open right now, for broadcasting."""
        with self._lock:
            return [s for s in self._sessions.values() if s.open]

    def voted_count(self) -> int:
        with self._lock:
            return len(self._voted)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
