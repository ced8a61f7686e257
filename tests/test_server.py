import asyncio
import json
import socket

import pytest
import websockets

from ballot.errors import ConfigError
from server.app import VoteServer
from server.vote_client import cast_vote

CANDIDATES = ["Candidate A", "Candidate B", "Candidate C"]


async def recv_json(ws, timeout: float = 2.0) -> dict:
    return json.loads(await asyncio.wait_for(ws.recv(), timeout=timeout))


async def assert_silent(ws, timeout: float = 0.3) -> None:
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(ws.recv(), timeout=timeout)


def run_with_server(scenario, candidates=CANDIDATES):
    async def runner():
        server = VoteServer(candidates, host="127.0.0.1", port=0)
        port = await server.start()
        try:
            return await scenario(f"ws://127.0.0.1:{port}", server)
        finally:
            await server.close()

    return asyncio.run(runner())


def tally(a: int, b: int, c: int) -> list:
    return [
        {"candidate": "Candidate A", "votes": a},
        {"candidate": "Candidate B", "votes": b},
        {"candidate": "Candidate C", "votes": c},
    ]


def test_full_voting_scenario():
    async def scenario(uri, server):
        async with websockets.connect(uri) as c1:
            welcome = await recv_json(c1)
            assert welcome["type"] == "welcome"
            assert welcome["candidates"] == CANDIDATES
            assert welcome["tally"] == tally(0, 0, 0)
            assert len(welcome["clientId"]) == 32

            await c1.send(json.dumps({"type": "vote", "candidate": "Candidate B"}))
            assert await recv_json(c1) == {"type": "vote_confirmed", "candidate": "Candidate B"}
            assert await recv_json(c1) == {"type": "tally_update", "tally": tally(0, 1, 0), "totalVotes": 1}

            # second vote from the same client
            await c1.send(json.dumps({"type": "vote", "candidate": "Candidate A"}))
            assert await recv_json(c1) == {"type": "error", "message": "You have already voted!"}
            await assert_silent(c1)

            async with websockets.connect(uri) as c2:
                assert (await recv_json(c2))["tally"] == tally(0, 1, 0)
                await c2.send(json.dumps({"type": "vote", "candidate": "Candidate Z"}))
                assert await recv_json(c2) == {"type": "error", "message": "Invalid candidate selected!"}
                await assert_silent(c1)

                await c1.close()

                await c2.send(json.dumps({"type": "request_tally"}))
                assert await recv_json(c2) == {"type": "tally_update", "tally": tally(0, 1, 0), "totalVotes": 1}

        assert server.tally.total_votes() == 1

    run_with_server(scenario)


def test_garbage_does_not_hurt_other_sessions():
    async def scenario(uri, server):
        async with websockets.connect(uri) as bad, websockets.connect(uri) as good:
            await recv_json(bad)
            await recv_json(good)

            await bad.send("definitely not json")
            assert await recv_json(bad) == {"type": "error", "message": "Invalid message format"}
            await bad.send(json.dumps({"type": "launch"}))
            assert await recv_json(bad) == {"type": "error", "message": "Unknown message type"}

            await good.send(json.dumps({"type": "vote", "candidate": "Candidate C"}))
            assert (await recv_json(good))["type"] == "vote_confirmed"
            assert (await recv_json(good))["tally"] == tally(0, 0, 1)
            # the broadcast reaches the misbehaving session too
            assert (await recv_json(bad))["tally"] == tally(0, 0, 1)

    run_with_server(scenario)


def test_concurrent_voters_all_counted():
    voters = 12

    async def one_voter(uri, candidate):
        async with websockets.connect(uri) as ws:
            await recv_json(ws)
            await ws.send(json.dumps({"type": "vote", "candidate": candidate}))
            while True:
                msg = await recv_json(ws)
                if msg["type"] == "vote_confirmed":
                    return msg

    async def scenario(uri, server):
        picks = [CANDIDATES[i % 3] for i in range(voters)]
        confirmed = await asyncio.gather(*(one_voter(uri, c) for c in picks))
        assert len(confirmed) == voters

        async with websockets.connect(uri) as observer:
            await recv_json(observer)
            await observer.send(json.dumps({"type": "request_tally"}))
            update = await recv_json(observer)
        assert update["totalVotes"] == voters
        assert update["tally"] == tally(4, 4, 4)

    run_with_server(scenario)


def test_disconnect_unregisters_session():
    async def scenario(uri, server):
        async with websockets.connect(uri) as ws:
            await recv_json(ws)
            assert len(server.registry) == 1
        for _ in range(50):
            if len(server.registry) == 0:
                break
            await asyncio.sleep(0.02)
        assert len(server.registry) == 0

    run_with_server(scenario)


def test_vote_client_collects_frames():
    async def scenario(uri, server):
        return await cast_vote(uri, "Candidate A", timeout=0.3)

    frames = run_with_server(scenario)
    assert [f["type"] for f in frames] == ["welcome", "vote_confirmed", "tally_update"]
    assert frames[2]["tally"] == tally(1, 0, 0)


def test_port_in_use_moves_to_next_port():
    async def scenario(busy_port):
        server = VoteServer(CANDIDATES, host="127.0.0.1", port=busy_port, port_retries=5)
        port = await server.start()
        try:
            assert busy_port < port <= busy_port + 5
            assert server.bound_port() == port
        finally:
            await server.close()

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        asyncio.run(scenario(blocker.getsockname()[1]))


def test_port_retry_is_bounded():
    async def scenario(busy_port):
        server = VoteServer(CANDIDATES, host="127.0.0.1", port=busy_port, port_retries=0)
        with pytest.raises(OSError):
            await server.start()

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        asyncio.run(scenario(blocker.getsockname()[1]))


def test_bad_candidate_list_prevents_startup():
    with pytest.raises(ConfigError):
        VoteServer([])
    with pytest.raises(ConfigError):
        VoteServer(["X", "X"])


def test_deeply_nested_frame_gets_error_and_session_survives():
    async def scenario(uri, server):
        async with websockets.connect(uri) as ws:
            await recv_json(ws)
            await ws.send("[" * 5000 + "]" * 5000)
            assert await recv_json(ws) == {"type": "error", "message": "Invalid message format"}

            await ws.send(json.dumps({"type": "vote", "candidate": "Candidate A"}))
            assert await recv_json(ws) == {"type": "vote_confirmed", "candidate": "Candidate A"}
            assert (await recv_json(ws))["tally"] == tally(1, 0, 0)
        assert server.tally.total_votes() == 1

    run_with_server(scenario)
