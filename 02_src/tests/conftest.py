"""Pytest configuration and fixtures."""

import sys
import uuid
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeConnection:
    """In-memory IConnection recording every delivered event."""

    def __init__(self, connection_id: str | None = None):
        self.connection_id = connection_id or f"conn-{uuid.uuid4().hex[:8]}"
        self.sent: list[tuple[str, object]] = []
        self.dead = False

    async def send(self, event: str, payload) -> None:
        from chat_core.errors import TransportError

        if self.dead:
            raise TransportError("Connection closed")
        self.sent.append((event, payload))

    def events(self, name: str | None = None) -> list[tuple[str, object]]:
        if name is None:
            return list(self.sent)
        return [(e, p) for e, p in self.sent if e == name]

    def payloads(self, name: str) -> list:
        return [p for e, p in self.sent if e == name]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def make_connection():
    """Factory for fake connections."""
    return FakeConnection


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from chat_core.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest_asyncio.fixture
async def identities(storage):
    """Seed a BOSS and two employees of the same company, plus an outsider."""
    from chat_core.models import Capability, Identity, Role

    users = {
        "boss": Identity(
            id="boss",
            company_id="acme",
            name="Bea Boss",
            email="boss@acme.test",
            role=Role.BOSS,
        ),
        "alice": Identity(
            id="alice",
            company_id="acme",
            name="Alice",
            email="alice@acme.test",
            role=Role.EMPLOYEE,
            flags={Capability.CAN_CREATE_TASK: True},
        ),
        "bob": Identity(
            id="bob",
            company_id="acme",
            name="Bob",
            email="bob@acme.test",
            role=Role.EMPLOYEE,
        ),
        "eve": Identity(
            id="eve",
            company_id="other",
            name="Eve",
            email="eve@other.test",
            role=Role.EMPLOYEE,
        ),
    }
    for identity in users.values():
        await storage.save_identity(identity)
    return users


@pytest.fixture
def event_bus(storage):
    """Create EventBus with storage."""
    from chat_core.event_bus import EventBus

    return EventBus(storage)


@pytest.fixture
def tracker(storage, event_bus):
    """Create Tracker with storage and event bus."""
    from chat_core.tracker import Tracker

    return Tracker(event_bus=event_bus, storage=storage)


@pytest.fixture
def registry():
    """Create an empty room registry."""
    from chat_core.chat import RoomRegistry

    return RoomRegistry()


@pytest.fixture
def broadcaster(registry):
    """Create Broadcaster over the registry."""
    from chat_core.chat import Broadcaster

    return Broadcaster(registry)


@pytest.fixture
def file_store(tmp_path):
    """Create a file store writing under a temporary directory."""
    from chat_core.files import LocalFileStore

    return LocalFileStore(tmp_path / "uploads")


@pytest_asyncio.fixture
async def chat_service(storage, identities, registry, broadcaster, event_bus, tracker, file_store):
    """Create a fully wired ChatService with a started tracker."""
    from chat_core.chat import ChatService
    from chat_core.permissions import PermissionEvaluator

    await tracker.start()
    service = ChatService(
        store=storage,
        identities=storage,
        registry=registry,
        broadcaster=broadcaster,
        evaluator=PermissionEvaluator(strict=True),
        event_bus=event_bus,
        tracker=tracker,
        file_store=file_store,
    )
    yield service
    await tracker.stop()
