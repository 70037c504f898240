"""Audit trail data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single audit record."""

    id: str
    event_type: str  # e.g. "message_created", "operation_rejected"
    actor: str  # user id or component that caused it
    data: dict
    timestamp: datetime
