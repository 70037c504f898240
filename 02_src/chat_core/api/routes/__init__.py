"""HTTP and WebSocket routes."""

from . import chat, chat_ws, control, files, observability, permissions

__all__ = ["chat", "chat_ws", "control", "files", "observability", "permissions"]
