"""Chat WebSocket route."""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ...app import Application
from ...chat import ChatSession
from ...errors import ChatError
from ...logging_config import get_logger
from ..connection import WebSocketConnection

logger = get_logger(__name__)


def handshake_user_id(websocket: WebSocket) -> str | None:
    """User id established by the authentication gateway for this socket."""
    return websocket.headers.get("x-user-id") or websocket.query_params.get("userId")


def create_chat_ws_router(app: Application) -> APIRouter:
    """Create chat WebSocket router."""
    router = APIRouter(tags=["chat"])

    @router.websocket("/ws/chat")
    async def chat_ws(websocket: WebSocket):
        """
        Realtime project chat:
          1) Resolves the connection identity from the handshake.
          2) Dispatches every inbound frame through a ChatSession.
          3) On disconnect, purges the connection from all rooms.
        """
        user_id = handshake_user_id(websocket)
        identity = None
        if user_id:
            try:
                identity = await app.chat_service.get_identity(user_id)
            except ChatError as e:
                logger.warning("Identity lookup failed during handshake: %s", e.message)
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
                return

        if identity is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()

        connection = WebSocketConnection(websocket)
        connection.start()
        session = ChatSession(connection, app.chat_service, identity.id)
        session.connect()
        logger.info(
            "Chat connection opened",
            extra={"context": {"connection_id": connection.connection_id, "user_id": identity.id}},
        )

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await session.handle_frame(raw)
        except WebSocketDisconnect:
            logger.info(
                "Chat connection closed",
                extra={"context": {"connection_id": connection.connection_id, "user_id": identity.id}},
            )
        finally:
            await session.disconnect()
            await connection.close()

    return router
