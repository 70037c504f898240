"""Identity, role and capability models."""

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Tenant roles."""

    BOSS = "BOSS"
    EMPLOYEE = "EMPLOYEE"


class Capability(str, Enum):
    """Permission flags a BOSS can grant to employees."""

    # Project
    CAN_CREATE_PROJECT = "canCreateProject"
    CAN_UPDATE_PROJECT = "canUpdateProject"
    CAN_DELETE_PROJECT = "canDeleteProject"
    CAN_VIEW_ALL_PROJECTS = "canViewAllProjects"

    # Task
    CAN_CREATE_TASK = "canCreateTask"
    CAN_UPDATE_TASK = "canUpdateTask"
    CAN_DELETE_TASK = "canDeleteTask"
    CAN_COMPLETE_TASK = "canCompleteTask"
    CAN_VERIFY_TASK = "canVerifyTask"
    CAN_VIEW_ALL_TASKS = "canViewAllTasks"
    CAN_VIEW_OVERDUE_TASKS = "canViewOverdueTasks"

    # Employee management
    CAN_CREATE_EMPLOYEE = "canCreateEmployee"
    CAN_UPDATE_EMPLOYEE = "canUpdateEmployee"
    CAN_DELETE_EMPLOYEE = "canDeleteEmployee"
    CAN_VIEW_ALL_EMPLOYEES = "canViewAllEmployees"
    CAN_MANAGE_PERMISSIONS = "canManagePermissions"

    # Team
    CAN_CREATE_TEAM = "canCreateTeam"
    CAN_UPDATE_TEAM = "canUpdateTeam"
    CAN_DELETE_TEAM = "canDeleteTeam"
    CAN_VIEW_ALL_TEAMS = "canViewAllTeams"

    # Advanced
    CAN_VIEW_AUDIT_LOGS = "canViewAuditLogs"
    CAN_VIEW_ALL_SESSIONS = "canViewAllSessions"
    CAN_MANAGE_2FA = "canManage2FA"


PermissionFlags = dict[Capability, bool]


@dataclass(frozen=True)
class Actor:
    """Role and permission flags of the user performing an operation."""

    user_id: str
    role: Role
    flags: PermissionFlags = field(default_factory=dict)

    @property
    def is_boss(self) -> bool:
        return self.role == Role.BOSS


@dataclass
class Identity:
    """Employee record as seen by the chat (read-only)."""

    id: str
    name: str
    email: str
    role: Role
    company_id: str | None = None
    flags: PermissionFlags = field(default_factory=dict)

    def to_actor(self) -> Actor:
        """Project the identity onto the evaluator's input."""
        return Actor(user_id=self.id, role=self.role, flags=dict(self.flags))
