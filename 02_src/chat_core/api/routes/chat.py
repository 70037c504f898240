"""Chat REST routes."""

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from ...app import Application
from ...errors import ChatError
from ...files import UploadedFile
from ..deps import current_user_id, to_http_error


class SenderResponse(BaseModel):
    """Sender snapshot."""

    id: str
    name: str
    email: str
    role: str


class ChatMessageResponse(BaseModel):
    """Response model for a chat message (camelCase, same as the socket payload)."""

    id: str
    projectId: str
    senderId: str
    sender: SenderResponse
    message: str
    attachments: list[str]
    isPinned: bool
    pinnedBy: str | None
    pinnedAt: str | None
    createdAt: str
    updatedAt: str


class DeleteResponse(BaseModel):
    """Response model for a deletion."""

    success: bool
    message: str


def create_chat_router(app: Application) -> APIRouter:
    """Create chat router."""
    router = APIRouter(prefix="/api/chat", tags=["chat"])

    @router.get(
        "/projects/{project_id}/messages",
        response_model=list[ChatMessageResponse],
    )
    async def get_messages(
        project_id: str, user_id: str = Depends(current_user_id)
    ) -> list[dict]:
        """Ordered history of a project chat."""
        try:
            messages = await app.chat_service.get_project_messages(project_id, user_id)
            return [m.to_payload() for m in messages]
        except ChatError as e:
            raise to_http_error(e)

    @router.get(
        "/projects/{project_id}/pinned",
        response_model=list[ChatMessageResponse],
    )
    async def get_pinned_messages(
        project_id: str, user_id: str = Depends(current_user_id)
    ) -> list[dict]:
        """Pinned messages, most recently pinned first."""
        try:
            messages = await app.chat_service.get_pinned_messages(project_id, user_id)
            return [m.to_payload() for m in messages]
        except ChatError as e:
            raise to_http_error(e)

    @router.post(
        "/projects/{project_id}/messages",
        response_model=ChatMessageResponse,
    )
    async def send_message(
        project_id: str,
        message: str = Form(""),
        files: list[UploadFile] | None = File(None),
        user_id: str = Depends(current_user_id),
    ) -> dict:
        """Send a message with optional file attachments; broadcast to the room."""
        try:
            uploads = [
                UploadedFile(
                    filename=f.filename or "",
                    content=await f.read(),
                    content_type=f.content_type,
                )
                for f in files or []
            ]
            saved = await app.chat_service.send_message_with_files(
                project_id, user_id, message, uploads
            )
            return saved.to_payload()
        except ChatError as e:
            await app.chat_service.record_rejection(user_id, "send-message", e)
            raise to_http_error(e)

    @router.put("/messages/{message_id}/pin", response_model=ChatMessageResponse)
    async def pin_message(
        message_id: str, user_id: str = Depends(current_user_id)
    ) -> dict:
        """Toggle the pin of a message (BOSS only)."""
        try:
            updated = await app.chat_service.toggle_pin(message_id, user_id)
            return updated.to_payload()
        except ChatError as e:
            await app.chat_service.record_rejection(user_id, "pin-message", e)
            raise to_http_error(e)

    @router.delete("/messages/{message_id}", response_model=DeleteResponse)
    async def delete_message(
        message_id: str, user_id: str = Depends(current_user_id)
    ) -> dict:
        """Delete a message (sender or BOSS)."""
        try:
            await app.chat_service.delete_message(message_id, user_id)
            return {"success": True, "message": "Message deleted"}
        except ChatError as e:
            await app.chat_service.record_rejection(user_id, "delete-message", e)
            raise to_http_error(e)

    return router
