"""Inbound event payload schemas."""

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JoinProjectPayload(_Payload):
    project_id: str = Field(alias="projectId", min_length=1)
    user_id: str | None = Field(default=None, alias="userId")
    role: str | None = None  # ignored, role is looked up server-side


class LeaveProjectPayload(_Payload):
    project_id: str = Field(alias="projectId", min_length=1)


class SendMessagePayload(_Payload):
    project_id: str = Field(alias="projectId", min_length=1)
    user_id: str | None = Field(default=None, alias="userId")
    role: str | None = None
    message: str | None = ""
    attachments: list[str] = Field(default_factory=list)


class MessageActionPayload(_Payload):
    """Payload of pin-message, unpin-message and delete-message."""

    message_id: str = Field(alias="messageId", min_length=1)
    user_id: str | None = Field(default=None, alias="userId")
    role: str | None = None
    project_id: str | None = Field(default=None, alias="projectId")


class TypingPayload(_Payload):
    project_id: str = Field(alias="projectId", min_length=1)
    user_id: str | None = Field(default=None, alias="userId")
    user_name: str = Field(default="", alias="userName")
    is_typing: bool = Field(alias="isTyping")


class EventFrame(_Payload):
    """A single WebSocket frame: {"event": ..., "data": {...}}."""

    event: str = Field(min_length=1)
    data: dict = Field(default_factory=dict)
