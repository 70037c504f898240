"""Uploaded file routes."""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from ...app import Application
from ...errors import ChatError
from ..deps import to_http_error


def create_files_router(app: Application) -> APIRouter:
    """Create file download router."""
    router = APIRouter(prefix="/api/storage", tags=["files"])

    @router.get("/files/{file_id}")
    async def get_file(file_id: str) -> FileResponse:
        """Serve an attachment previously stored with a chat message."""
        try:
            path = app.file_store.resolve(file_id)
        except ChatError as e:
            raise to_http_error(e)
        return FileResponse(path)

    return router
