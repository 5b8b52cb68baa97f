"""
权限目录 API 路由 (/api/v1/admin/permissions)

端点:
- GET /admin/permissions - 按模块/资源分组的权限目录 [权限: core.permissions.view]
- POST /admin/permissions - 新建权限 [权限: core.permissions.manage]
- PATCH /admin/permissions/{permission_id} - 重命名/修改描述 [权限: core.permissions.manage]
- DELETE /admin/permissions/{permission_id} - 删除权限 [权限: core.permissions.manage]
- POST /admin/permissions/sync - 同步代码注册表 [权限: core.permissions.manage]
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.deps.auth import require_permissions
from app.schemas.base import MessageResponse
from app.schemas.permission import (
    PermissionCreate,
    PermissionModule,
    PermissionRead,
    PermissionSyncResult,
    PermissionUpdate,
)
from app.services.permissions import PermissionAdminService

router = APIRouter(prefix="/admin/permissions", tags=["Admin - Permissions"])


@router.get(
    "",
    response_model=list[PermissionModule],
    dependencies=[Depends(require_permissions(["core.permissions.view"]))],
)
async def list_permissions(
    db: AsyncSession = Depends(get_db),
) -> list[PermissionModule]:
    return await PermissionAdminService(db).list_grouped()


@router.post(
    "",
    response_model=PermissionRead,
    status_code=201,
    dependencies=[Depends(require_permissions(["core.permissions.manage"]))],
)
async def create_permission(
    request: PermissionCreate,
    db: AsyncSession = Depends(get_db),
) -> PermissionRead:
    return await PermissionAdminService(db).create_permission(request)


@router.post(
    "/sync",
    response_model=PermissionSyncResult,
    dependencies=[Depends(require_permissions(["core.permissions.manage"]))],
)
async def sync_permission_registry(
    db: AsyncSession = Depends(get_db),
) -> PermissionSyncResult:
    return await PermissionAdminService(db).sync_registry()


@router.patch(
    "/{permission_id}",
    response_model=PermissionRead,
    dependencies=[Depends(require_permissions(["core.permissions.manage"]))],
)
async def update_permission(
    permission_id: UUID,
    request: PermissionUpdate,
    db: AsyncSession = Depends(get_db),
) -> PermissionRead:
    """重命名会让全部权限缓存失效"""
    return await PermissionAdminService(db).update_permission(permission_id, request)


@router.delete(
    "/{permission_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions(["core.permissions.manage"]))],
)
async def delete_permission(
    permission_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await PermissionAdminService(db).delete_permission(permission_id)
    return MessageResponse(message="Permission deleted successfully")
