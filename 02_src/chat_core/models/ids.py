"""Message identifier types.

Server ids and client-side provisional ids live in disjoint namespaces:
provisional ids always carry PROVISIONAL_PREFIX, persisted ids never do.
"""

import uuid

PROVISIONAL_PREFIX = "temp-"


class PersistedId(str):
    """Identifier allocated by the server when a message is stored."""

    def __new__(cls, value: str):
        if not value:
            raise ValueError("Persisted id must not be empty")
        if value.startswith(PROVISIONAL_PREFIX):
            raise ValueError(f"Persisted id may not use the {PROVISIONAL_PREFIX!r} namespace")
        return super().__new__(cls, value)

    @classmethod
    def generate(cls) -> "PersistedId":
        """Allocate a fresh server id."""
        return cls(str(uuid.uuid4()))


class ProvisionalId(str):
    """Client-generated identifier for a message not yet confirmed."""

    def __new__(cls, value: str):
        if not value.startswith(PROVISIONAL_PREFIX):
            raise ValueError(f"Provisional id must start with {PROVISIONAL_PREFIX!r}")
        return super().__new__(cls, value)

    @classmethod
    def generate(cls) -> "ProvisionalId":
        """Allocate a fresh provisional id."""
        return cls(f"{PROVISIONAL_PREFIX}{uuid.uuid4().hex}")


def is_provisional(value: str) -> bool:
    """Check whether an id belongs to the provisional namespace."""
    return isinstance(value, ProvisionalId) or value.startswith(PROVISIONAL_PREFIX)
