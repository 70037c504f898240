"""Capability catalog, presets and flag assignment."""

from dataclasses import dataclass
from typing import Iterable, Mapping

from ..logging_config import get_logger
from ..models import Capability, PermissionFlags

logger = get_logger(__name__)


@dataclass(frozen=True)
class CapabilityInfo:
    """Display metadata for one capability."""

    key: Capability
    label: str
    description: str
    dangerous: bool = False


@dataclass(frozen=True)
class CapabilityCategory:
    """A group of related capabilities."""

    category: str
    description: str
    capabilities: tuple[CapabilityInfo, ...]


CATEGORIES: tuple[CapabilityCategory, ...] = (
    CapabilityCategory(
        category="Project Management",
        description="Control over project lifecycle",
        capabilities=(
            CapabilityInfo(Capability.CAN_CREATE_PROJECT, "Create Projects", "Can create new projects"),
            CapabilityInfo(Capability.CAN_UPDATE_PROJECT, "Update Projects", "Can edit project details and settings"),
            CapabilityInfo(Capability.CAN_DELETE_PROJECT, "Delete Projects", "Can permanently delete projects", dangerous=True),
            CapabilityInfo(Capability.CAN_VIEW_ALL_PROJECTS, "View All Projects", "Can see all company projects (not just assigned)"),
        ),
    ),
    CapabilityCategory(
        category="Task Management",
        description="Control over task operations",
        capabilities=(
            CapabilityInfo(Capability.CAN_CREATE_TASK, "Create Tasks", "Can create new tasks"),
            CapabilityInfo(Capability.CAN_UPDATE_TASK, "Update Tasks", "Can edit task details, reassign, change priority"),
            CapabilityInfo(Capability.CAN_DELETE_TASK, "Delete Tasks", "Can permanently delete tasks", dangerous=True),
            CapabilityInfo(Capability.CAN_COMPLETE_TASK, "Complete Tasks (No Verification)", "Can mark tasks as complete without BOSS approval"),
            CapabilityInfo(Capability.CAN_VERIFY_TASK, "Verify Tasks", "Can approve/verify completed tasks"),
            CapabilityInfo(Capability.CAN_VIEW_ALL_TASKS, "View All Tasks", "Can see all company tasks (not just assigned)"),
            CapabilityInfo(Capability.CAN_VIEW_OVERDUE_TASKS, "View Overdue Report", "Can access overdue tasks dashboard"),
        ),
    ),
    CapabilityCategory(
        category="Employee Management",
        description="Control over employee accounts and permissions",
        capabilities=(
            CapabilityInfo(Capability.CAN_CREATE_EMPLOYEE, "Create Employees", "Can invite and create new employee accounts"),
            CapabilityInfo(Capability.CAN_UPDATE_EMPLOYEE, "Update Employees", "Can edit employee details and skills"),
            CapabilityInfo(Capability.CAN_DELETE_EMPLOYEE, "Delete Employees", "Can remove employee accounts", dangerous=True),
            CapabilityInfo(Capability.CAN_VIEW_ALL_EMPLOYEES, "View All Employees", "Can see all employees in company"),
            CapabilityInfo(Capability.CAN_MANAGE_PERMISSIONS, "Manage Permissions", "Can grant/revoke permissions to other employees", dangerous=True),
        ),
    ),
    CapabilityCategory(
        category="Team Management",
        description="Control over team operations",
        capabilities=(
            CapabilityInfo(Capability.CAN_CREATE_TEAM, "Create Teams", "Can create new teams"),
            CapabilityInfo(Capability.CAN_UPDATE_TEAM, "Update Teams", "Can edit team details and members"),
            CapabilityInfo(Capability.CAN_DELETE_TEAM, "Delete Teams", "Can permanently delete teams", dangerous=True),
            CapabilityInfo(Capability.CAN_VIEW_ALL_TEAMS, "View All Teams", "Can see all company teams"),
        ),
    ),
    CapabilityCategory(
        category="Advanced Access",
        description="High-level system access",
        capabilities=(
            CapabilityInfo(Capability.CAN_VIEW_AUDIT_LOGS, "View Audit Logs", "Can view audit logs of all users", dangerous=True),
            CapabilityInfo(Capability.CAN_VIEW_ALL_SESSIONS, "View All Sessions", "Can view active sessions of all users", dangerous=True),
            CapabilityInfo(Capability.CAN_MANAGE_2FA, "Manage 2FA", "Can enable/disable 2FA for own account"),
        ),
    ),
)

ALL_CAPABILITIES: tuple[CapabilityInfo, ...] = tuple(
    info for category in CATEGORIES for info in category.capabilities
)

PRESETS: dict[str, tuple[Capability, ...]] = {
    "TEAM_LEADER": (
        Capability.CAN_VIEW_ALL_TASKS,
        Capability.CAN_CREATE_TASK,
        Capability.CAN_UPDATE_TASK,
        Capability.CAN_VERIFY_TASK,
        Capability.CAN_VIEW_ALL_EMPLOYEES,
        Capability.CAN_VIEW_ALL_PROJECTS,
    ),
    "PROJECT_MANAGER": (
        Capability.CAN_CREATE_PROJECT,
        Capability.CAN_UPDATE_PROJECT,
        Capability.CAN_VIEW_ALL_PROJECTS,
        Capability.CAN_CREATE_TASK,
        Capability.CAN_UPDATE_TASK,
        Capability.CAN_DELETE_TASK,
        Capability.CAN_VIEW_ALL_TASKS,
        Capability.CAN_VIEW_OVERDUE_TASKS,
        Capability.CAN_VIEW_ALL_EMPLOYEES,
        Capability.CAN_CREATE_TEAM,
        Capability.CAN_UPDATE_TEAM,
    ),
    "HR_MANAGER": (
        Capability.CAN_CREATE_EMPLOYEE,
        Capability.CAN_UPDATE_EMPLOYEE,
        Capability.CAN_VIEW_ALL_EMPLOYEES,
        Capability.CAN_VIEW_AUDIT_LOGS,
        Capability.CAN_VIEW_ALL_SESSIONS,
    ),
    "SENIOR_DEVELOPER": (
        Capability.CAN_CREATE_TASK,
        Capability.CAN_COMPLETE_TASK,
        Capability.CAN_VIEW_ALL_TASKS,
        Capability.CAN_VIEW_ALL_PROJECTS,
    ),
}


def get_capability_info(capability: Capability) -> CapabilityInfo:
    """Look up display metadata for a capability."""
    for info in ALL_CAPABILITIES:
        if info.key == capability:
            return info
    raise KeyError(capability)


def is_dangerous(capability: Capability) -> bool:
    """Capabilities that grant significant power are flagged for the UI."""
    return get_capability_info(capability).dangerous


def get_preset(name: str) -> tuple[Capability, ...]:
    """Get preset capabilities by name (empty for unknown presets)."""
    return PRESETS.get(name, ())


def normalize_flags(raw: Mapping[str, object]) -> PermissionFlags:
    """Convert a stored {name: bool} record into Capability keys."""
    flags: PermissionFlags = {}
    for key, value in raw.items():
        try:
            capability = Capability(key)
        except ValueError:
            logger.warning("Ignoring unknown stored permission flag %r", key)
            continue
        flags[capability] = value is True
    return flags


def assign_permissions(
    flags: PermissionFlags,
    capabilities: Iterable[Capability],
    overwrite: bool = False,
) -> PermissionFlags:
    """
    Grant capabilities on top of existing flags.

    Args:
        flags: Current flags (not mutated).
        capabilities: Capabilities to set to True.
        overwrite: If True every capability is reset to False first,
                   otherwise the grant is merged into the existing flags.

    Returns:
        The new flags record.
    """
    if overwrite:
        updated: PermissionFlags = {capability: False for capability in Capability}
    else:
        updated = dict(flags)

    for capability in capabilities:
        updated[Capability(capability)] = True

    return updated
