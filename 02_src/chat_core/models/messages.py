"""Chat message data models."""

from dataclasses import dataclass, field
from datetime import datetime

from .identity import Identity, Role


@dataclass(frozen=True)
class SenderSnapshot:
    """Sender profile captured when the message was sent."""

    id: str
    name: str
    email: str
    role: Role

    @classmethod
    def from_identity(cls, identity: Identity) -> "SenderSnapshot":
        return cls(
            id=identity.id,
            name=identity.name,
            email=identity.email,
            role=identity.role,
        )

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
        }


@dataclass
class NewChatMessage:
    """A validated message waiting to be persisted (no id yet)."""

    project_id: str
    sender: SenderSnapshot
    message: str
    attachments: list[str] = field(default_factory=list)


@dataclass
class ChatMessage:
    """A persisted message in a project chat room."""

    id: str
    project_id: str
    sender_id: str
    sender: SenderSnapshot
    message: str
    created_at: datetime
    updated_at: datetime
    attachments: list[str] = field(default_factory=list)
    is_pinned: bool = False
    pinned_by: str | None = None
    pinned_at: datetime | None = None

    def __post_init__(self) -> None:
        if (self.pinned_by is None) != (self.pinned_at is None):
            raise ValueError("pinned_by and pinned_at must be set together")
        if self.is_pinned != (self.pinned_by is not None):
            raise ValueError("is_pinned must agree with pinned_by/pinned_at")

    def to_payload(self) -> dict:
        """Serialize to the camelCase shape the UI consumes."""
        return {
            "id": self.id,
            "projectId": self.project_id,
            "senderId": self.sender_id,
            "sender": self.sender.to_payload(),
            "message": self.message,
            "attachments": list(self.attachments),
            "isPinned": self.is_pinned,
            "pinnedBy": self.pinned_by,
            "pinnedAt": self.pinned_at.isoformat() if self.pinned_at else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
