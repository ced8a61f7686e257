"""Small command-line client for poking at a running vote server.

    python -m server.vote_client ws://localhost:7004 "Candidate B"
"""

import asyncio
import json
import sys
from typing import List, Optional

import websockets


async def cast_vote(uri: str, candidate: Optional[str] = None, timeout: float = 1.0) -> List[dict]:
    """Connect, optionally vote, and collect frames until `timeout` passes quietly.

    The first item is always the welcome frame.
    """
    received: List[dict] = []
    async with websockets.connect(uri) as ws:
        received.append(json.loads(await ws.recv()))
        if candidate is not None:
            await ws.send(json.dumps({"type": "vote", "candidate": candidate}))
        while True:
            try:
                raw = await asyncio.wait_for(ws.recv(), timeout=timeout)
            except asyncio.TimeoutError:
                break
            received.append(json.loads(raw))
    return received


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("usage: vote_client URI [CANDIDATE]", file=sys.stderr)
        return 2
    uri = args[0]
    candidate = args[1] if len(args) > 1 else None
    for frame in asyncio.run(cast_vote(uri, candidate)):
        print(json.dumps(frame))
    return 0


if __name__ == "__main__":
    sys.exit(main())
