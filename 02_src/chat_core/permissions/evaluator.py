"""Permission evaluation.

BOSS is a universal override: every known capability evaluates True.
EMPLOYEE capabilities reflect the stored flags, defaulting to False.
An unknown capability name is a programming error: strict evaluators raise,
lenient ones log and deny. Nothing here performs I/O.
"""

from typing import Iterable, Protocol

from ..errors import UnknownCapabilityError
from ..logging_config import get_logger
from ..models import Actor, Capability, ChatMessage

logger = get_logger(__name__)

CapabilityLike = Capability | str

TASK_CAPABILITIES = (
    Capability.CAN_CREATE_TASK,
    Capability.CAN_UPDATE_TASK,
    Capability.CAN_DELETE_TASK,
    Capability.CAN_COMPLETE_TASK,
    Capability.CAN_VERIFY_TASK,
    Capability.CAN_VIEW_ALL_TASKS,
    Capability.CAN_VIEW_OVERDUE_TASKS,
)


def _coerce(capability: CapabilityLike, strict: bool) -> Capability | None:
    if isinstance(capability, Capability):
        return capability
    try:
        return Capability(capability)
    except ValueError:
        if strict:
            raise UnknownCapabilityError(f"Unknown capability: {capability!r}") from None
        logger.error("Unknown capability %r evaluated as denied", capability)
        return None


def evaluate(actor: Actor, capability: CapabilityLike, *, strict: bool = True) -> bool:
    """Answer whether the actor holds a capability."""
    resolved = _coerce(capability, strict)
    if resolved is None:
        return False
    if actor.is_boss:
        return True
    return actor.flags.get(resolved) is True


def has_all(
    actor: Actor, capabilities: Iterable[CapabilityLike], *, strict: bool = True
) -> bool:
    """Logical AND over capabilities."""
    # Evaluate every entry so unknown names surface even after a False
    results = [evaluate(actor, c, strict=strict) for c in capabilities]
    return all(results)


def has_any(
    actor: Actor, capabilities: Iterable[CapabilityLike], *, strict: bool = True
) -> bool:
    """Logical OR over capabilities."""
    results = [evaluate(actor, c, strict=strict) for c in capabilities]
    return any(results)


def has_any_task_permission(actor: Actor) -> bool:
    """Any single task flag unlocks every task operation."""
    return has_any(actor, TASK_CAPABILITIES)


def can_pin_messages(actor: Actor) -> bool:
    """Pinning and unpinning chat messages is reserved for BOSS."""
    return actor.is_boss


def can_delete_message(actor: Actor, message: ChatMessage) -> bool:
    """The original sender or a BOSS may delete a message."""
    return actor.is_boss or message.sender_id == actor.user_id


class IPermissionEvaluator(Protocol):
    """Capability answers for an actor."""

    def evaluate(self, actor: Actor, capability: CapabilityLike) -> bool:
        """Check a single capability."""
        ...

    def has_all(self, actor: Actor, capabilities: Iterable[CapabilityLike]) -> bool:
        """Check that every capability is held."""
        ...

    def has_any(self, actor: Actor, capabilities: Iterable[CapabilityLike]) -> bool:
        """Check that at least one capability is held."""
        ...

    def can_pin_messages(self, actor: Actor) -> bool:
        """Check the pin/unpin rule."""
        ...

    def can_delete_message(self, actor: Actor, message: ChatMessage) -> bool:
        """Check the delete rule."""
        ...


class PermissionEvaluator:
    """Stateless evaluator bound to a strictness mode."""

    def __init__(self, strict: bool = True):
        self._strict = strict

    @property
    def strict(self) -> bool:
        return self._strict

    def evaluate(self, actor: Actor, capability: CapabilityLike) -> bool:
        return evaluate(actor, capability, strict=self._strict)

    def has_all(self, actor: Actor, capabilities: Iterable[CapabilityLike]) -> bool:
        return has_all(actor, capabilities, strict=self._strict)

    def has_any(self, actor: Actor, capabilities: Iterable[CapabilityLike]) -> bool:
        return has_any(actor, capabilities, strict=self._strict)

    def has_any_task_permission(self, actor: Actor) -> bool:
        return has_any_task_permission(actor)

    def can_pin_messages(self, actor: Actor) -> bool:
        return can_pin_messages(actor)

    def can_delete_message(self, actor: Actor, message: ChatMessage) -> bool:
        return can_delete_message(actor, message)
