"""Application bootstrap and lifecycle management."""

import os
from pathlib import Path
from typing import Protocol

from .chat import Broadcaster, ChatService, RoomRegistry
from .config import is_production, resolve_db_path
from .event_bus import EventBus
from .files import IFileStore, LocalFileStore
from .logging_config import get_logger
from .permissions import PermissionEvaluator
from .permissions.assignment import PermissionAssignmentService
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Composition root owning every chat component."""

    def __init__(
        self,
        db_path: str | None = None,
        uploads_dir: str | Path | None = None,
        strict_permissions: bool | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._uploads_dir = uploads_dir
        self._strict_permissions = (
            not is_production() if strict_permissions is None else strict_permissions
        )

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._event_bus: EventBus | None = None
        self._tracker: Tracker | None = None
        self._evaluator: PermissionEvaluator | None = None
        self._file_store: IFileStore | None = None
        self._registry: RoomRegistry | None = None
        self._broadcaster: Broadcaster | None = None
        self._chat_service: ChatService | None = None
        self._assignments: PermissionAssignmentService | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. EventBus (depends on Storage for persistence)
        self._event_bus = EventBus(self._storage)

        # 3. Tracker (depends on EventBus + Storage)
        self._tracker = Tracker(self._event_bus, self._storage)
        await self._tracker.start()

        # 4. Stateless / leaf components
        self._evaluator = PermissionEvaluator(strict=self._strict_permissions)
        self._file_store = LocalFileStore(self._uploads_dir)
        self._registry = RoomRegistry()
        self._broadcaster = Broadcaster(self._registry)

        # 5. ChatService (depends on everything above)
        self._chat_service = ChatService(
            store=self._storage,
            identities=self._storage,
            registry=self._registry,
            broadcaster=self._broadcaster,
            evaluator=self._evaluator,
            event_bus=self._event_bus,
            tracker=self._tracker,
            file_store=self._file_store,
        )

        # 6. Permission assignment (depends on Storage, evaluator, Tracker)
        self._assignments = PermissionAssignmentService(
            storage=self._storage,
            evaluator=self._evaluator,
            tracker=self._tracker,
        )
        logger.info(
            "All components initialized successfully",
            extra={"context": {"strict_permissions": self._strict_permissions}},
        )

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._tracker:
            await self._tracker.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def tracker(self) -> ITracker:
        """Get tracker instance."""
        if not self._tracker:
            raise RuntimeError("Application not started")
        return self._tracker

    @property
    def registry(self) -> RoomRegistry:
        """Get room registry instance."""
        if not self._registry:
            raise RuntimeError("Application not started")
        return self._registry

    @property
    def chat_service(self) -> ChatService:
        """Get chat service instance."""
        if not self._chat_service:
            raise RuntimeError("Application not started")
        return self._chat_service

    @property
    def file_store(self) -> IFileStore:
        """Get file store instance."""
        if not self._file_store:
            raise RuntimeError("Application not started")
        return self._file_store

    @property
    def permission_assignments(self) -> PermissionAssignmentService:
        """Get permission assignment service."""
        if not self._assignments:
            raise RuntimeError("Application not started")
        return self._assignments
