"""Client-side conversation state with optimistic message reconciliation.

Rules a client follows to keep its local view consistent with the server:

* a locally submitted message is shown at once under a ProvisionalId;
* ``new-message`` replaces the matching provisional entry instead of adding a
  second copy, and is ignored if its id is already present;
* ``project-messages`` replaces the whole local state;
* ``message-pinned`` replaces the entry with the same id;
* ``message-deleted`` removes the entry with the same id.
"""

from datetime import datetime, timezone
from typing import Any

from ..models import ProvisionalId, is_provisional
from .events import ServerEvent


def _same_content(provisional: dict, confirmed: dict) -> bool:
    return (
        provisional.get("senderId") == confirmed.get("senderId")
        and provisional.get("projectId") == confirmed.get("projectId")
        and (provisional.get("message") or "").strip() == (confirmed.get("message") or "").strip()
        and list(provisional.get("attachments") or []) == list(confirmed.get("attachments") or [])
    )


class ConversationState:
    """Local message list of one project room."""

    def __init__(self, project_id: str):
        self._project_id = project_id
        self._messages: list[dict] = []

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def messages(self) -> list[dict]:
        return list(self._messages)

    @property
    def pending(self) -> list[dict]:
        return [m for m in self._messages if is_provisional(m["id"])]

    @property
    def pinned(self) -> list[dict]:
        return [m for m in self._messages if m.get("isPinned")]

    def add_provisional(
        self,
        sender: dict,
        text: str,
        attachments: list[str] | None = None,
    ) -> ProvisionalId:
        """Render a message locally before the server confirms it."""
        provisional_id = ProvisionalId.generate()
        now = datetime.now(timezone.utc).isoformat()
        self._messages.append(
            {
                "id": provisional_id,
                "projectId": self._project_id,
                "senderId": sender["id"],
                "sender": dict(sender),
                "message": text.strip(),
                "attachments": list(attachments or []),
                "isPinned": False,
                "pinnedBy": None,
                "pinnedAt": None,
                "createdAt": now,
                "updatedAt": now,
            }
        )
        return provisional_id

    def apply_snapshot(self, messages: list[dict]) -> None:
        """Authoritative history replaces everything held locally."""
        self._messages = [dict(m) for m in messages]

    def apply_new_message(self, message: dict) -> None:
        if message.get("projectId") != self._project_id:
            return
        if any(m["id"] == message["id"] for m in self._messages):
            return

        match = self._find_provisional(message)
        if match is not None:
            self._messages.pop(match)
        self._messages.append(dict(message))

    def apply_pinned(self, message: dict) -> None:
        self._messages = [
            dict(message) if m["id"] == message["id"] else m for m in self._messages
        ]

    def apply_deleted(self, payload: dict) -> None:
        message_id = payload["messageId"]
        self._messages = [m for m in self._messages if m["id"] != message_id]

    def apply(self, event: str, payload: Any) -> None:
        """Apply one server event to the local state."""
        if event == ServerEvent.PROJECT_MESSAGES.value:
            self.apply_snapshot(payload)
        elif event == ServerEvent.NEW_MESSAGE.value:
            self.apply_new_message(payload)
        elif event == ServerEvent.MESSAGE_PINNED.value:
            self.apply_pinned(payload)
        elif event == ServerEvent.MESSAGE_DELETED.value:
            self.apply_deleted(payload)

    def _find_provisional(self, confirmed: dict) -> int | None:
        for index, message in enumerate(self._messages):
            if is_provisional(message["id"]) and _same_content(message, confirmed):
                return index
        return None
