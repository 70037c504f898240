"""Shared request helpers for the HTTP routes."""

from fastapi import Header, HTTPException

from ..errors import ChatError

USER_HEADER = "X-User-Id"


async def current_user_id(x_user_id: str | None = Header(None)) -> str:
    """User id injected by the authentication gateway."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail=f"Missing {USER_HEADER} header")
    return x_user_id


def to_http_error(error: ChatError) -> HTTPException:
    """Map a chat error onto an HTTP status."""
    return HTTPException(status_code=error.status_code, detail=error.message)
