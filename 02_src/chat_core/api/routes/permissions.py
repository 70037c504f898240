"""Permission catalog and assignment routes."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ...app import Application
from ...errors import ChatError
from ...permissions import CATEGORIES, PRESETS
from ..deps import current_user_id, to_http_error


class CapabilityResponse(BaseModel):
    """One capability of the catalog."""

    key: str
    label: str
    description: str
    dangerous: bool


class CategoryResponse(BaseModel):
    """A group of capabilities."""

    category: str
    description: str
    permissions: list[CapabilityResponse]


class CatalogResponse(BaseModel):
    """Full capability catalog with presets."""

    categories: list[CategoryResponse]
    presets: dict[str, list[str]]


class UserPermissionsResponse(BaseModel):
    """Role and flags of one user."""

    userId: str
    role: str
    permissions: dict[str, bool]


class BulkAssignRequest(BaseModel):
    """Request model for granting capabilities to several employees."""

    model_config = ConfigDict(populate_by_name=True)

    employee_ids: list[str] = Field(alias="employeeIds", min_length=1)
    permissions: list[str] = Field(default_factory=list)
    overwrite: bool = False


class PresetAssignRequest(BaseModel):
    """Request model for granting a preset."""

    model_config = ConfigDict(populate_by_name=True)

    employee_ids: list[str] = Field(alias="employeeIds", min_length=1)
    overwrite: bool = False


class AssignmentResponse(BaseModel):
    """Outcome of a bulk assignment."""

    success: bool
    message: str
    employeesUpdated: int
    permissionsGranted: int
    errors: list[str]


def _assignment_payload(result) -> dict:
    return {
        "success": result.success,
        "message": result.message,
        "employeesUpdated": result.employees_updated,
        "permissionsGranted": result.permissions_granted,
        "errors": result.errors,
    }


def create_permissions_router(app: Application) -> APIRouter:
    """Create permissions router."""
    router = APIRouter(prefix="/api/permissions", tags=["permissions"])

    @router.get("/catalog", response_model=CatalogResponse)
    async def get_catalog() -> dict:
        """All capabilities grouped by category, with the named presets."""
        return {
            "categories": [
                {
                    "category": category.category,
                    "description": category.description,
                    "permissions": [
                        {
                            "key": info.key.value,
                            "label": info.label,
                            "description": info.description,
                            "dangerous": info.dangerous,
                        }
                        for info in category.capabilities
                    ],
                }
                for category in CATEGORIES
            ],
            "presets": {
                name: [c.value for c in capabilities]
                for name, capabilities in PRESETS.items()
            },
        }

    @router.get("/users/{user_id}", response_model=UserPermissionsResponse)
    async def get_user_permissions(
        user_id: str, _: str = Depends(current_user_id)
    ) -> dict:
        """Role and permission flags of a user."""
        identity = await app.storage.get_identity(user_id)
        if identity is None:
            raise HTTPException(status_code=404, detail="User not found")
        return {
            "userId": identity.id,
            "role": identity.role.value,
            "permissions": {c.value: v for c, v in identity.flags.items()},
        }

    @router.post("/bulk-assign", response_model=AssignmentResponse)
    async def bulk_assign(
        request: BulkAssignRequest, user_id: str = Depends(current_user_id)
    ) -> dict:
        """Grant capabilities to several employees of the caller's company."""
        try:
            result = await app.permission_assignments.bulk_assign(
                user_id,
                request.employee_ids,
                request.permissions,
                overwrite=request.overwrite,
            )
            return _assignment_payload(result)
        except ChatError as e:
            raise to_http_error(e)

    @router.post("/presets/{preset_name}", response_model=AssignmentResponse)
    async def apply_preset(
        preset_name: str,
        request: PresetAssignRequest,
        user_id: str = Depends(current_user_id),
    ) -> dict:
        """Grant a named preset to several employees."""
        try:
            result = await app.permission_assignments.apply_preset(
                user_id,
                request.employee_ids,
                preset_name,
                overwrite=request.overwrite,
            )
            return _assignment_payload(result)
        except ChatError as e:
            raise to_http_error(e)

    return router
