"""
Unit tests for SessionRegistry.
"""

import pytest

from stockpile_server.session import SessionRegistry


class StubSession:
    """Minimal session with a ready flag that records deliveries."""

    def __init__(self, session_id, ready=True):
        self.session_id = session_id
        self.ready = ready
        self.received = []

    async def deliver(self, line):
        self.received.append(line)


class TestSessionRegistry:
    """Tests for membership and broadcast."""

    def test_add_remove(self):
        registry = SessionRegistry()
        session = StubSession(1)

        registry.add(session)
        assert session in registry
        assert len(registry) == 1

        registry.remove(session)
        registry.remove(session)
        assert session not in registry
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_broadcast_excludes_sender(self):
        registry = SessionRegistry()
        sender, a, b = StubSession(1), StubSession(2), StubSession(3)
        for s in (sender, a, b):
            registry.add(s)

        assert await registry.broadcast("+1|0|ax", exclude=sender) == 2
        assert sender.received == []
        assert a.received == ["+1|0|ax"]
        assert b.received == ["+1|0|ax"]

    @pytest.mark.asyncio
    async def test_broadcast_skips_sessions_in_bulk_phase(self):
        registry = SessionRegistry()
        sender = StubSession(1)
        joining = StubSession(2, ready=False)
        registry.add(sender)
        registry.add(joining)

        assert await registry.broadcast("+1|0|ax", exclude=sender) == 0
        assert joining.received == []

    @pytest.mark.asyncio
    async def test_broadcast_without_peers(self):
        registry = SessionRegistry()
        assert await registry.broadcast("+1|0|ax") == 0

    def test_iteration_is_a_copy(self):
        registry = SessionRegistry()
        sessions = [StubSession(i) for i in range(3)]
        for s in sessions:
            registry.add(s)

        for s in registry:
            registry.remove(s)
        assert len(registry) == 0
