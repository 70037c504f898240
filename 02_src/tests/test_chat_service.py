"""Tests for ChatService."""

import asyncio
import gc

import pytest

from chat_core.errors import (
    AuthorizationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from chat_core.files import UploadedFile
from chat_core.models import Topic, is_provisional


async def joined(service, make_connection, user_id, project_id="p1"):
    conn = make_connection()
    await service.join_project(conn, project_id, user_id)
    conn.clear()
    return conn


class TestJoinProject:
    """Tests for joining a project chat."""

    @pytest.mark.asyncio
    async def test_join_sends_snapshot_to_joiner_only(self, chat_service, make_connection):
        other = await joined(chat_service, make_connection, "bob")
        await chat_service.send_message("p1", "bob", "first")
        other.clear()

        conn = make_connection()
        history = await chat_service.join_project(conn, "p1", "alice")

        assert [m.message for m in history] == ["first"]
        snapshot = conn.payloads("project-messages")
        assert len(snapshot) == 1
        assert [m["message"] for m in snapshot[0]] == ["first"]
        assert other.events() == []

    @pytest.mark.asyncio
    async def test_join_empty_room(self, chat_service, make_connection):
        conn = make_connection()
        await chat_service.join_project(conn, "p1", "alice")
        assert conn.events() == [("project-messages", [])]

    @pytest.mark.asyncio
    async def test_rejoin_is_idempotent(self, chat_service, registry, make_connection):
        conn = make_connection()
        await chat_service.join_project(conn, "p1", "alice")
        await chat_service.join_project(conn, "p1", "alice")

        assert len(registry.memberships_of("p1")) == 1
        assert len(conn.payloads("project-messages")) == 2

    @pytest.mark.asyncio
    async def test_unknown_user_cannot_join(self, chat_service, registry, make_connection):
        conn = make_connection()
        with pytest.raises(AuthorizationError):
            await chat_service.join_project(conn, "p1", "ghost")
        assert not registry.is_member(conn, "p1")

    @pytest.mark.asyncio
    async def test_leave_and_disconnect(self, chat_service, registry, make_connection):
        conn = await joined(chat_service, make_connection, "alice")
        await chat_service.join_project(conn, "p2", "alice")

        await chat_service.leave_project(conn, "p1")
        assert chat_service.rooms_of(conn) == {"p2"}

        assert await chat_service.disconnect(conn) == ["p2"]
        assert registry.rooms_of(conn) == set()

    @pytest.mark.asyncio
    async def test_room_locks_do_not_accumulate(self, chat_service, make_connection):
        """Locks of rooms nobody is using are released."""
        conn = make_connection()
        for i in range(50):
            await chat_service.join_project(conn, f"room-{i}", "alice")
            await chat_service.send_message(f"room-{i}", "alice", "hi", connection=conn)
            await chat_service.leave_project(conn, f"room-{i}")
        await chat_service.send_message("never-joined", "bob", "hello")

        gc.collect()
        assert len(chat_service._room_locks) == 0


class TestSendMessage:
    """Tests for sending messages."""

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_member_including_sender(
        self, chat_service, make_connection
    ):
        sender = await joined(chat_service, make_connection, "alice")
        sender_tab = await joined(chat_service, make_connection, "alice")
        reader = await joined(chat_service, make_connection, "bob")
        outsider = await joined(chat_service, make_connection, "boss", project_id="p2")

        saved = await chat_service.send_message(
            "p1", "alice", "  hello  ", connection=sender
        )

        assert saved.message == "hello"
        assert not is_provisional(saved.id)
        for conn in (sender, sender_tab, reader):
            assert conn.payloads("new-message") == [saved.to_payload()]
        assert outsider.events() == []

    @pytest.mark.asyncio
    async def test_sender_snapshot_comes_from_identity(self, chat_service, make_connection):
        saved = await chat_service.send_message("p1", "alice", "hi")

        assert saved.sender_id == "alice"
        assert saved.sender.name == "Alice"
        assert saved.sender.email == "alice@acme.test"
        assert saved.sender.role.value == "EMPLOYEE"
        assert saved.is_pinned is False
        assert saved.pinned_by is None and saved.pinned_at is None

    @pytest.mark.asyncio
    async def test_sender_must_be_joined(self, chat_service, make_connection, storage):
        conn = make_connection()
        with pytest.raises(AuthorizationError):
            await chat_service.send_message("p1", "alice", "hi", connection=conn)
        assert await storage.list_by_project("p1") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", None])
    async def test_empty_message_rejected(self, chat_service, make_connection, storage, text):
        conn = await joined(chat_service, make_connection, "alice")
        with pytest.raises(ValidationError):
            await chat_service.send_message("p1", "alice", text, connection=conn)

        assert conn.events() == []
        assert await storage.list_by_project("p1") == []

    @pytest.mark.asyncio
    async def test_attachments_only_message(self, chat_service):
        saved = await chat_service.send_message(
            "p1", "alice", "", ["/api/storage/files/abc.pdf", "  ", ""]
        )
        assert saved.message == ""
        assert saved.attachments == ["/api/storage/files/abc.pdf"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "attachment",
        [
            "/files/report.exe",
            "ftp://host/file.pdf",
            "/files/noext",
            "/files/../secret.pdf",
            "javascript:alert(1).js",
        ],
    )
    async def test_invalid_attachment_rejected(self, chat_service, storage, attachment):
        with pytest.raises(ValidationError):
            await chat_service.send_message("p1", "alice", "see file", [attachment])
        assert await storage.list_by_project("p1") == []

    @pytest.mark.asyncio
    async def test_too_many_attachments(self, chat_service):
        urls = [f"/api/storage/files/{i}.png" for i in range(6)]
        with pytest.raises(ValidationError):
            await chat_service.send_message("p1", "alice", "", urls)

    @pytest.mark.asyncio
    async def test_persistence_failure_broadcasts_nothing(
        self, chat_service, storage, make_connection
    ):
        """No broadcast without a durable write."""
        conn = await joined(chat_service, make_connection, "alice")
        await storage.close()

        with pytest.raises(PersistenceError):
            await chat_service.send_message("p1", "alice", "lost", connection=conn)

        assert conn.payloads("new-message") == []

    @pytest.mark.asyncio
    async def test_history_is_in_persisted_order(self, chat_service, make_connection):
        for i in range(5):
            await chat_service.send_message("p1", "alice" if i % 2 else "bob", f"m{i}")

        history = await chat_service.get_project_messages("p1", "boss")
        assert [m.message for m in history] == ["m0", "m1", "m2", "m3", "m4"]

    @pytest.mark.asyncio
    async def test_concurrent_sends_broadcast_in_persisted_order(
        self, chat_service, storage, make_connection
    ):
        """Every member sees new-message events in the same order as the store."""
        a = await joined(chat_service, make_connection, "alice")
        b = await joined(chat_service, make_connection, "bob")

        await asyncio.gather(
            *[
                chat_service.send_message("p1", "alice" if i % 2 else "bob", f"m{i}")
                for i in range(10)
            ]
        )

        persisted = [m.id for m in await storage.list_by_project("p1")]
        assert [p["id"] for p in a.payloads("new-message")] == persisted
        assert [p["id"] for p in b.payloads("new-message")] == persisted

    @pytest.mark.asyncio
    async def test_send_publishes_domain_event(self, chat_service, storage):
        saved = await chat_service.send_message("p1", "alice", "hello")

        events = await storage.get_domain_events(project_id="p1")
        assert len(events) == 1
        assert events[0].topic == Topic.MESSAGE_CREATED
        assert events[0].payload["id"] == saved.id
        assert events[0].actor_id == "alice"

    @pytest.mark.asyncio
    async def test_send_with_files(self, chat_service, file_store):
        saved = await chat_service.send_message_with_files(
            "p1",
            "alice",
            "report attached",
            [UploadedFile(filename="report.pdf", content=b"%PDF-1.4")],
        )

        assert len(saved.attachments) == 1
        url = saved.attachments[0]
        assert url.startswith("/api/storage/files/")
        assert file_store.resolve(url.rsplit("/", 1)[1]).read_bytes() == b"%PDF-1.4"

    @pytest.mark.asyncio
    async def test_send_with_disallowed_file(self, chat_service, file_store, storage):
        with pytest.raises(ValidationError):
            await chat_service.send_message_with_files(
                "p1", "alice", "", [UploadedFile(filename="virus.exe", content=b"MZ")]
            )
        assert await storage.list_by_project("p1") == []

    @pytest.mark.asyncio
    async def test_uploads_removed_when_message_not_persisted(
        self, chat_service, file_store, storage, monkeypatch
    ):
        async def failing_append(message):
            raise RuntimeError("disk full")

        monkeypatch.setattr(storage, "append", failing_append)

        with pytest.raises(PersistenceError):
            await chat_service.send_message_with_files(
                "p1", "alice", "report", [UploadedFile(filename="report.pdf", content=b"%PDF")]
            )

        assert list(file_store.root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_empty_upload_message_stores_nothing(self, chat_service, file_store):
        with pytest.raises(ValidationError):
            await chat_service.send_message_with_files("p1", "alice", "  ", [])
        assert not file_store.root.exists()


class TestPinMessage:
    """Tests for pinning."""

    @pytest.mark.asyncio
    async def test_boss_toggles_pin(self, chat_service, make_connection):
        boss = await joined(chat_service, make_connection, "boss")
        reader = await joined(chat_service, make_connection, "alice")
        msg = await chat_service.send_message("p1", "alice", "important")
        reader.clear()

        pinned = await chat_service.toggle_pin(msg.id, "boss", connection=boss)

        assert pinned.is_pinned is True
        assert pinned.pinned_by == "boss"
        assert pinned.pinned_at is not None
        assert reader.payloads("message-pinned") == [pinned.to_payload()]

        unpinned = await chat_service.toggle_pin(msg.id, "boss", connection=boss)

        assert unpinned.is_pinned is False
        assert unpinned.pinned_by is None and unpinned.pinned_at is None
        assert reader.payloads("message-pinned")[-1]["isPinned"] is False

    @pytest.mark.asyncio
    async def test_employee_cannot_pin(self, chat_service, storage, make_connection):
        employee = await joined(chat_service, make_connection, "alice")
        reader = await joined(chat_service, make_connection, "bob")
        msg = await chat_service.send_message("p1", "alice", "mine")
        reader.clear()

        with pytest.raises(AuthorizationError):
            await chat_service.toggle_pin(msg.id, "alice", connection=employee)

        assert reader.events() == []
        assert (await storage.get_message(msg.id)).is_pinned is False

    @pytest.mark.asyncio
    async def test_pin_missing_message(self, chat_service):
        with pytest.raises(NotFoundError):
            await chat_service.toggle_pin("missing", "boss")

    @pytest.mark.asyncio
    async def test_pin_requires_membership(self, chat_service, make_connection):
        msg = await chat_service.send_message("p1", "alice", "hi")
        with pytest.raises(AuthorizationError):
            await chat_service.toggle_pin(msg.id, "boss", connection=make_connection())

    @pytest.mark.asyncio
    async def test_pin_with_wrong_project(self, chat_service, make_connection):
        boss = await joined(chat_service, make_connection, "boss")
        msg = await chat_service.send_message("p1", "alice", "hi")
        with pytest.raises(ValidationError):
            await chat_service.toggle_pin(msg.id, "boss", connection=boss, project_id="p2")

    @pytest.mark.asyncio
    async def test_explicit_pin_and_unpin_are_idempotent(
        self, chat_service, storage, make_connection
    ):
        boss = await joined(chat_service, make_connection, "boss")
        reader = await joined(chat_service, make_connection, "alice")
        msg = await chat_service.send_message("p1", "alice", "hi")
        reader.clear()

        await chat_service.pin_message(msg.id, "boss", connection=boss)
        boss.clear()
        again = await chat_service.pin_message(msg.id, "boss", connection=boss)

        assert again.is_pinned is True
        assert len(reader.payloads("message-pinned")) == 1
        assert boss.payloads("message-pinned") == [again.to_payload()]

        await chat_service.unpin_message(msg.id, "boss", connection=boss)
        await chat_service.unpin_message(msg.id, "boss", connection=boss)
        assert len(reader.payloads("message-pinned")) == 2

        pinned_events = [
            e for e in await storage.get_domain_events() if e.topic == Topic.MESSAGE_PINNED
        ]
        assert len(pinned_events) == 2

    @pytest.mark.asyncio
    async def test_pinned_listing(self, chat_service):
        first = await chat_service.send_message("p1", "alice", "a")
        await chat_service.send_message("p1", "alice", "b")
        await chat_service.pin_message(first.id, "boss")

        pinned = await chat_service.get_pinned_messages("p1", "bob")
        assert [m.id for m in pinned] == [first.id]


class TestDeleteMessage:
    """Tests for deleting messages."""

    @pytest.mark.asyncio
    async def test_sender_deletes_own_message(self, chat_service, storage, make_connection):
        sender = await joined(chat_service, make_connection, "alice")
        reader = await joined(chat_service, make_connection, "bob")
        msg = await chat_service.send_message("p1", "alice", "oops", connection=sender)
        reader.clear()

        await chat_service.delete_message(msg.id, "alice", connection=sender)

        assert reader.payloads("message-deleted") == [{"messageId": msg.id}]
        assert sender.payloads("message-deleted") == [{"messageId": msg.id}]
        assert await storage.get_message(msg.id) is None

    @pytest.mark.asyncio
    async def test_boss_deletes_any_message(self, chat_service, storage):
        msg = await chat_service.send_message("p1", "alice", "bad")
        await chat_service.delete_message(msg.id, "boss")
        assert await storage.get_message(msg.id) is None

    @pytest.mark.asyncio
    async def test_employee_cannot_delete_others_message(
        self, chat_service, storage, make_connection
    ):
        other = await joined(chat_service, make_connection, "bob")
        msg = await chat_service.send_message("p1", "alice", "mine")
        other.clear()

        with pytest.raises(AuthorizationError):
            await chat_service.delete_message(msg.id, "bob", connection=other)

        assert other.events() == []
        assert await storage.get_message(msg.id) is not None

    @pytest.mark.asyncio
    async def test_delete_missing_message(self, chat_service):
        with pytest.raises(NotFoundError):
            await chat_service.delete_message("never-existed", "boss")

    @pytest.mark.asyncio
    async def test_repeated_delete_acks_originator_only(
        self, chat_service, storage, make_connection
    ):
        """A retried delete succeeds without a second broadcast or domain event."""
        sender = await joined(chat_service, make_connection, "alice")
        reader = await joined(chat_service, make_connection, "bob")
        msg = await chat_service.send_message("p1", "alice", "once", connection=sender)
        await chat_service.delete_message(msg.id, "alice", connection=sender)
        sender.clear()
        reader.clear()

        await chat_service.delete_message(msg.id, "alice", connection=sender)

        assert sender.payloads("message-deleted") == [{"messageId": msg.id}]
        assert reader.events() == []
        deleted_events = [
            e for e in await storage.get_domain_events() if e.topic == Topic.MESSAGE_DELETED
        ]
        assert len(deleted_events) == 1


class TestTyping:
    """Tests for typing indicators."""

    @pytest.mark.asyncio
    async def test_typing_excludes_originator(self, chat_service, make_connection):
        typist = await joined(chat_service, make_connection, "alice")
        reader = await joined(chat_service, make_connection, "bob")

        await chat_service.typing(typist, "p1", "alice", "Alice", True)

        assert typist.events() == []
        assert reader.payloads("user-typing") == [
            {"userId": "alice", "userName": "Alice", "isTyping": True}
        ]

    @pytest.mark.asyncio
    async def test_typing_in_unjoined_room_is_ignored(self, chat_service, make_connection):
        reader = await joined(chat_service, make_connection, "bob")
        stranger = make_connection()

        await chat_service.typing(stranger, "p1", "alice", "Alice", True)

        assert reader.events() == []


class TestAuditing:
    """Tests for the audit trail produced by chat operations."""

    @pytest.mark.asyncio
    async def test_mutations_are_traced(self, chat_service, storage):
        msg = await chat_service.send_message("p1", "alice", "hello")
        await chat_service.toggle_pin(msg.id, "boss")
        await chat_service.delete_message(msg.id, "boss")

        types = {e.event_type for e in await storage.get_trace_events()}
        assert {"message_created", "message_pinned", "message_deleted"} <= types

    @pytest.mark.asyncio
    async def test_record_rejection(self, chat_service, storage):
        await chat_service.record_rejection(
            "alice", "pin-message", AuthorizationError("Only BOSS can pin messages")
        )

        events = await storage.get_trace_events(event_types=["operation_rejected"])
        assert len(events) == 1
        assert events[0].actor == "alice"
        assert events[0].data == {
            "operation": "pin-message",
            "error": "AuthorizationError",
            "reason": "Only BOSS can pin messages",
        }


class TestScenario:
    """End-to-end room scenario: employee A and BOSS B in project P1."""

    @pytest.mark.asyncio
    async def test_send_pin_and_rejected_unpin(self, chat_service, storage, make_connection):
        a = await joined(chat_service, make_connection, "alice", project_id="P1")
        b = await joined(chat_service, make_connection, "boss", project_id="P1")

        msg = await chat_service.send_message("P1", "alice", "status update", connection=a)
        assert [p["id"] for p in b.payloads("new-message")] == [msg.id]

        await chat_service.pin_message(msg.id, "boss", connection=b, project_id="P1")
        assert a.payloads("message-pinned")[-1]["pinnedBy"] == "boss"
        a.clear()
        b.clear()

        with pytest.raises(AuthorizationError):
            await chat_service.unpin_message(msg.id, "alice", connection=a, project_id="P1")

        assert a.events() == [] and b.events() == []
        assert (await storage.get_message(msg.id)).is_pinned is True

    @pytest.mark.asyncio
    async def test_empty_send_never_reaches_store(self, chat_service, storage, monkeypatch):
        calls = []
        original = storage.append

        async def spy(message):
            calls.append(message)
            return await original(message)

        monkeypatch.setattr(storage, "append", spy)

        with pytest.raises(ValidationError):
            await chat_service.send_message("p1", "alice", "  ", [])

        assert calls == []
