"""Tests for Broadcaster."""

import pytest

from chat_core.chat import ServerEvent
from chat_core.models import Role


class TestBroadcast:
    """Tests for room fan-out."""

    @pytest.mark.asyncio
    async def test_delivers_to_every_member(self, registry, broadcaster, make_connection):
        a, b = make_connection(), make_connection()
        registry.join(a, "p1", "alice", Role.EMPLOYEE)
        registry.join(b, "p1", "bob", Role.EMPLOYEE)

        delivered = await broadcaster.broadcast("p1", ServerEvent.NEW_MESSAGE, {"id": "m1"})

        assert delivered == 2
        assert a.events() == [("new-message", {"id": "m1"})]
        assert b.events() == [("new-message", {"id": "m1"})]

    @pytest.mark.asyncio
    async def test_other_rooms_are_not_reached(self, registry, broadcaster, make_connection):
        a, outsider = make_connection(), make_connection()
        registry.join(a, "p1", "alice", Role.EMPLOYEE)
        registry.join(outsider, "p2", "bob", Role.EMPLOYEE)

        await broadcaster.broadcast("p1", ServerEvent.NEW_MESSAGE, {"id": "m1"})

        assert outsider.events() == []

    @pytest.mark.asyncio
    async def test_exclude_skips_originator(self, registry, broadcaster, make_connection):
        typist, reader = make_connection(), make_connection()
        registry.join(typist, "p1", "alice", Role.EMPLOYEE)
        registry.join(reader, "p1", "bob", Role.EMPLOYEE)

        await broadcaster.broadcast("p1", "user-typing", {"isTyping": True}, exclude=typist)

        assert typist.events() == []
        assert reader.events("user-typing") == [("user-typing", {"isTyping": True})]

    @pytest.mark.asyncio
    async def test_empty_room(self, broadcaster):
        assert await broadcaster.broadcast("nobody", ServerEvent.NEW_MESSAGE, {}) == 0

    @pytest.mark.asyncio
    async def test_dead_connection_is_isolated_and_purged(
        self, registry, broadcaster, make_connection
    ):
        """A failing recipient neither blocks the others nor stays registered."""
        alive, dead = make_connection(), make_connection()
        dead.dead = True
        registry.join(alive, "p1", "alice", Role.EMPLOYEE)
        registry.join(dead, "p1", "bob", Role.EMPLOYEE)
        registry.join(dead, "p2", "bob", Role.EMPLOYEE)

        delivered = await broadcaster.broadcast("p1", ServerEvent.NEW_MESSAGE, {"id": "m1"})

        assert delivered == 1
        assert alive.events() == [("new-message", {"id": "m1"})]
        assert registry.rooms_of(dead) == set()
        assert registry.members_of("p1") == {alive}


class TestSendTo:
    """Tests for single-connection delivery."""

    @pytest.mark.asyncio
    async def test_send_to(self, broadcaster, make_connection):
        conn = make_connection()
        assert await broadcaster.send_to(conn, ServerEvent.ERROR, {"message": "x"}) is True
        assert conn.events() == [("error", {"message": "x"})]

    @pytest.mark.asyncio
    async def test_send_to_dead_connection(self, registry, broadcaster, make_connection):
        conn = make_connection()
        registry.join(conn, "p1", "alice", Role.EMPLOYEE)
        conn.dead = True

        assert await broadcaster.send_to(conn, ServerEvent.ERROR, {}) is False
        assert not registry.is_member(conn, "p1")
