import threading

from ballot.registry import SessionRegistry


def test_register_creates_open_unvoted_sessions_with_unique_ids():
    registry = SessionRegistry()
    ids = {registry.register() for _ in range(200)}
    assert len(ids) == 200
    assert len(registry) == 200
    session = registry.get(next(iter(ids)))
    assert session.open is True
    assert session.voted is False
    assert len(session.id) == 32


def test_mark_voted_only_once():
    registry = SessionRegistry()
    sid = registry.register()
    assert registry.mark_voted(sid) is True
    assert registry.mark_voted(sid) is False
    assert registry.get(sid).voted is True
    assert registry.has_voted(sid)
    assert registry.voted_count() == 1


def test_mark_voted_rejects_unknown_and_closed_sessions():
    registry = SessionRegistry()
    assert registry.mark_voted("nope") is False

    sid = registry.register()
    registry.unregister(sid)
    assert registry.mark_voted(sid) is False
    assert registry.voted_count() == 0


def test_unregister_is_idempotent_and_keeps_vote_record():
    registry = SessionRegistry()
    sid = registry.register(connection="ws")
    session = registry.get(sid)
    registry.mark_voted(sid)

    registry.unregister(sid)
    registry.unregister(sid)

    assert session.open is False
    assert registry.get(sid) is None
    assert len(registry) == 0
    assert registry.has_voted(sid)


def test_active_sessions_is_a_snapshot():
    registry = SessionRegistry()
    a = registry.register(connection="a")
    b = registry.register(connection="b")
    active = registry.active_sessions()
    assert {s.id for s in active} == {a, b}

    registry.unregister(a)
    # the earlier snapshot is not mutated, but a new one drops the closed session
    assert len(active) == 2
    assert [s.id for s in registry.active_sessions()] == [b]


def test_concurrent_mark_voted_has_a_single_winner():
    registry = SessionRegistry()
    sid = registry.register()
    results = []
    barrier = threading.Barrier(16)

    def worker():
        barrier.wait()
        results.append(registry.mark_voted(sid))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert results.count(False) == 15
