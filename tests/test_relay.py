import asyncio

from roulette.connection import ConnectionClosed, pipe
from roulette.relay import CONNECTED_NOTICE, relay


class FailingConnection:
    """Connection whose reads fail after the first notice write."""

    name = "failing"

    def __init__(self):
        self.closed = False
        self.writes = []

    async def read(self, n=-1):
        await asyncio.sleep(0.01)
        raise OSError("connection reset")

    async def write(self, data):
        if self.closed:
            raise ConnectionClosed("failing is closed")
        self.writes.append(data)
        return len(data)

    async def close(self):
        self.closed = True


def test_notice_then_bytes_flow_both_ways():
    async def scenario():
        alice, alice_srv = pipe("alice", "alice-srv")
        bob, bob_srv = pipe("bob", "bob-srv")
        session = asyncio.create_task(relay(alice_srv, bob_srv))

        assert await alice.read() == CONNECTED_NOTICE
        assert await bob.read() == CONNECTED_NOTICE
        await alice.write(b"hi bob")
        assert await asyncio.wait_for(bob.read(), timeout=1) == b"hi bob"
        await bob.write(b"hi alice")
        assert await asyncio.wait_for(alice.read(), timeout=1) == b"hi alice"

        await alice.close()
        outcome = await asyncio.wait_for(session, timeout=1)
        assert outcome.clean
        assert alice_srv.closed and bob_srv.closed
        assert await bob.read() == b""

    asyncio.run(scenario())


def test_error_on_one_side_tears_down_both(log_messages):
    async def scenario():
        bad = FailingConnection()
        bob, bob_srv = pipe("bob", "bob-srv")
        outcome = await asyncio.wait_for(relay(bad, bob_srv), timeout=1)
        assert isinstance(outcome.error, OSError)
        assert bad.closed and bob_srv.closed
        assert bad.writes == [CONNECTED_NOTICE]
        assert await bob.read() == CONNECTED_NOTICE
        assert await bob.read() == b""

    asyncio.run(scenario())
    assert any(m.startswith("relay_error") for m in log_messages)


def test_clean_disconnect_is_not_logged_as_error(log_messages):
    async def scenario():
        alice, alice_srv = pipe()
        bob, bob_srv = pipe()
        session = asyncio.create_task(relay(alice_srv, bob_srv))
        await alice.read()
        await bob.close()
        await asyncio.wait_for(session, timeout=1)

    asyncio.run(scenario())
    assert not any(m.startswith("relay_error") for m in log_messages)
    assert any(m.startswith("session_end") for m in log_messages)


def test_notice_failure_still_closes_both():
    async def scenario():
        alice, alice_srv = pipe()
        bob, bob_srv = pipe()
        await bob.close()
        outcome = await relay(alice_srv, bob_srv)
        assert isinstance(outcome.error, ConnectionClosed)
        assert alice_srv.closed and bob_srv.closed

    asyncio.run(scenario())


def test_tap_sees_bytes_from_second_side():
    async def scenario():
        seen = []
        alice, alice_srv = pipe()
        bob, bob_srv = pipe()
        session = asyncio.create_task(relay(alice_srv, bob_srv, tap=seen.append))
        await alice.read()
        await bob.read()
        await bob.write(b"learn this")
        assert await asyncio.wait_for(alice.read(), timeout=1) == b"learn this"
        await alice.write(b"not this")
        assert await asyncio.wait_for(bob.read(), timeout=1) == b"not this"
        await alice.close()
        await asyncio.wait_for(session, timeout=1)
        assert seen == [b"learn this"]

    asyncio.run(scenario())
