import threading
from typing import Dict, Iterable, List, Tuple

from .errors import ConfigError, UnknownCandidate

TallySnapshot = Tuple[Tuple[str, int], ...]


class TallyStore:
    """Vote counts per candidate, for a candidate list fixed at construction.

    Every candidate always has an entry and nothing else ever gets one.
    Reads and writes go through a single lock that is only held for the
    in-memory update, so snapshots are consistent point-in-time views.
    """

    def __init__(self, candidates: Iterable[str]) -> None:
        ordered = list(candidates)
        if not ordered:
            raise ConfigError("Candidate list must not be empty")
        seen = set()
        duplicates = []
        for name in ordered:
            if not isinstance(name, str):
                raise ConfigError(f"Candidate names must be strings, got {name!r}")
            if name in seen:
                duplicates.append(name)
            seen.add(name)
        if duplicates:
            raise ConfigError(f"Duplicate candidates: {', '.join(duplicates)}")

        self._candidates: Tuple[str, ...] = tuple(ordered)
        self._counts: Dict[str, int] = {name: 0 for name in self._candidates}
        self._lock = threading.Lock()

    @property
    def candidates(self) -> Tuple[str, ...]:
        return self._candidates

    def is_candidate(self, name: object) -> bool:
        return isinstance(name, str) and name in self._counts

    def increment(self, candidate: str) -> TallySnapshot:
        """Add one vote for `candidate` and return the snapshot right after it.

        Raises UnknownCandidate (the store is left untouched) if `candidate`
        is not in the configured list.
        """
        if not self.is_candidate(candidate):
            raise UnknownCandidate(candidate)
        with self._lock:
            self._counts[candidate] += 1
            return self._snapshot_locked()

    def snapshot(self) -> TallySnapshot:
        """Ordered ``(candidate, votes)`` pairs in configuration order."""
        with self._lock:
            return self._snapshot_locked()

    def total_votes(self) -> int:
        with self._lock:
            return sum(self._counts.values())

    def _snapshot_locked(self) -> TallySnapshot:
        return tuple((name, self._counts[name]) for name in self._candidates)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"TallyStore({dict(self.snapshot())!r})"


def tally_entries(snapshot: TallySnapshot) -> List[dict]:
    """Wire form of a snapshot: ``[{"candidate": ..., "votes": ...}, ...]``."""
    return [{"candidate": name, "votes": votes} for name, votes in snapshot]


def snapshot_total(snapshot: TallySnapshot) -> int:
    return sum(votes for _, votes in snapshot)
