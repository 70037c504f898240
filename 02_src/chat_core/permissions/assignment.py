"""Bulk permission assignment."""

from dataclasses import dataclass, field
from typing import Iterable

from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import Capability, Role
from ..storage import IStorage
from ..tracker import ITracker
from .catalog import PRESETS, assign_permissions
from .evaluator import IPermissionEvaluator

logger = get_logger(__name__)


@dataclass
class AssignmentResult:
    """Outcome of a bulk assignment."""

    success: bool
    message: str
    employees_updated: int
    permissions_granted: int
    errors: list[str] = field(default_factory=list)


class PermissionAssignmentService:
    """Grants capabilities to employees on behalf of a BOSS or permission manager."""

    def __init__(
        self,
        storage: IStorage,
        evaluator: IPermissionEvaluator,
        tracker: ITracker | None = None,
    ):
        self._storage = storage
        self._evaluator = evaluator
        self._tracker = tracker

    async def bulk_assign(
        self,
        performer_id: str,
        employee_ids: list[str],
        capabilities: Iterable[Capability | str],
        overwrite: bool = False,
    ) -> AssignmentResult:
        """
        Grant capabilities to several employees.

        Args:
            performer_id: User performing the change (BOSS or canManagePermissions).
            employee_ids: Target employees of the performer's company.
            capabilities: Capabilities to grant.
            overwrite: Replace all existing flags instead of merging.

        Returns:
            AssignmentResult with per-employee errors.
        """
        try:
            granted = [Capability(c) for c in capabilities]
        except ValueError as e:
            raise ValidationError(str(e)) from e

        performer = await self._storage.get_identity(performer_id)
        if performer is None:
            raise NotFoundError("User not found")

        if not self._evaluator.evaluate(performer.to_actor(), Capability.CAN_MANAGE_PERMISSIONS):
            raise AuthorizationError(
                "Only BOSS or users with canManagePermissions can manage permissions"
            )

        if not performer.company_id:
            raise ValidationError("No company associated with user")

        employees = {
            identity.id: identity
            for identity in await self._storage.get_identities(employee_ids)
        }

        errors: list[str] = []
        updated = 0
        for employee_id in employee_ids:
            employee = employees.get(employee_id)
            if employee is None or employee.company_id != performer.company_id:
                errors.append(f"Employee {employee_id} not found in company")
                continue
            if employee.role != Role.EMPLOYEE:
                errors.append(f"Cannot change permissions of {employee.email}")
                continue

            try:
                flags = assign_permissions(employee.flags, granted, overwrite=overwrite)
                await self._storage.update_flags(employee.id, flags)
                updated += 1
            except Exception as e:
                logger.exception("Failed to update permissions for %s", employee.id)
                errors.append(f"Failed to update {employee.email}: {e}")

        if self._tracker is not None:
            await self._tracker.track(
                event_type="permissions_assigned",
                actor=performer.id,
                data={
                    "employee_ids": employee_ids,
                    "permissions": [c.value for c in granted],
                    "overwrite": overwrite,
                    "success_count": updated,
                    "total_count": len(employee_ids),
                },
            )

        return AssignmentResult(
            success=not errors,
            message=f"Successfully updated {updated} out of {len(employee_ids)} employees",
            employees_updated=updated,
            permissions_granted=len(granted),
            errors=errors,
        )

    async def apply_preset(
        self,
        performer_id: str,
        employee_ids: list[str],
        preset_name: str,
        overwrite: bool = False,
    ) -> AssignmentResult:
        """Grant a named preset to several employees."""
        preset = PRESETS.get(preset_name)
        if preset is None:
            raise NotFoundError(f"Unknown permission preset: {preset_name}")
        return await self.bulk_assign(performer_id, employee_ids, preset, overwrite)
