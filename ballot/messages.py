"""Wire protocol: one JSON object per UTF-8 text frame.

Client -> server:
- {"type": "vote", "candidate": "Candidate B"}
- {"type": "request_tally"}

Server -> client:
- {"type": "welcome", "clientId": ..., "candidates": [...], "tally": [...]}
- {"type": "vote_confirmed", "candidate": ...}
- {"type": "tally_update", "tally": [...], "totalVotes": n}
- {"type": "error", "message": ...}

where each tally entry is {"candidate": name, "votes": count}.
"""

import json
from dataclasses import dataclass
from typing import Sequence, Union

from .errors import MalformedMessage, UnknownMessageType, VoteError
from .tally import TallySnapshot, snapshot_total, tally_entries


@dataclass(frozen=True)
class Vote:
    candidate: str


@dataclass(frozen=True)
class RequestTally:
    pass


Inbound = Union[Vote, RequestTally]


def decode(raw: Union[str, bytes]) -> Inbound:
    """Parse one inbound frame.

    Raises MalformedMessage when the frame is not a JSON object of the
    expected shape and UnknownMessageType for any other ``type``.
    """
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        msg = json.loads(raw)
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise MalformedMessage() from exc

    if not isinstance(msg, dict):
        raise MalformedMessage()

    msg_type = msg.get("type")
    if msg_type == "vote":
        candidate = msg.get("candidate")
        if not isinstance(candidate, str):
            raise MalformedMessage()
        return Vote(candidate)
    if msg_type == "request_tally":
        return RequestTally()
    raise UnknownMessageType(msg_type)


def _encode(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False)


def welcome(client_id: str, candidates: Sequence[str], snapshot: TallySnapshot) -> str:
    return _encode({
        "type": "welcome",
        "clientId": client_id,
        "candidates": list(candidates),
        "tally": tally_entries(snapshot),
    })


def vote_confirmed(candidate: str) -> str:
    return _encode({"type": "vote_confirmed", "candidate": candidate})


def tally_update(snapshot: TallySnapshot) -> str:
    # totalVotes comes from the same snapshot as the counts so the two always agree
    return _encode({
        "type": "tally_update",
        "tally": tally_entries(snapshot),
        "totalVotes": snapshot_total(snapshot),
    })


def error(err: Union[VoteError, str]) -> str:
    message = err if isinstance(err, str) else err.message
    return _encode({"type": "error", "message": message})
