"""Permission engine."""

from .catalog import (
    ALL_CAPABILITIES,
    CATEGORIES,
    PRESETS,
    CapabilityCategory,
    CapabilityInfo,
    assign_permissions,
    get_capability_info,
    get_preset,
    is_dangerous,
    normalize_flags,
)
from .evaluator import (
    TASK_CAPABILITIES,
    IPermissionEvaluator,
    PermissionEvaluator,
    can_delete_message,
    can_pin_messages,
    evaluate,
    has_all,
    has_any,
    has_any_task_permission,
)

__all__ = [
    "ALL_CAPABILITIES",
    "CATEGORIES",
    "PRESETS",
    "TASK_CAPABILITIES",
    "CapabilityCategory",
    "CapabilityInfo",
    "IPermissionEvaluator",
    "PermissionEvaluator",
    "assign_permissions",
    "can_delete_message",
    "can_pin_messages",
    "evaluate",
    "get_capability_info",
    "get_preset",
    "has_all",
    "has_any",
    "has_any_task_permission",
    "is_dangerous",
    "normalize_flags",
]
