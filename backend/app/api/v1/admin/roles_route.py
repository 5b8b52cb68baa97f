"""
角色管理 API 路由

端点:
- GET /admin/roles - 角色列表（含权限）[权限: core.roles.view]
- POST /admin/roles - 创建角色 [权限: core.roles.manage]
- GET /admin/roles/{role_id} - 角色详情 [权限: core.roles.view]
- PATCH /admin/roles/{role_id} - 更新角色 [权限: core.roles.manage]
- DELETE /admin/roles/{role_id} - 删除角色 [权限: core.roles.manage]
- PUT /admin/roles/{role_id}/permissions - 整体同步角色权限 [权限: core.roles.manage]
- POST /admin/users/{user_id}/roles - 分配/移除用户直接角色 [权限: core.roles.manage]
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.deps.auth import require_permissions
from app.schemas.base import MessageResponse
from app.schemas.role import RoleCreate, RolePermissionSync, RoleUpdate, RoleWithPermissions
from app.schemas.user import RoleAssignment
from app.services.roles import RoleAdminService

router = APIRouter(prefix="/admin", tags=["Admin - Roles"])


@router.get(
    "/roles",
    response_model=list[RoleWithPermissions],
    dependencies=[Depends(require_permissions(["core.roles.view"]))],
)
async def list_roles(
    db: AsyncSession = Depends(get_db),
) -> list[RoleWithPermissions]:
    return await RoleAdminService(db).list_roles()


@router.post(
    "/roles",
    response_model=RoleWithPermissions,
    status_code=201,
    dependencies=[Depends(require_permissions(["core.roles.manage"]))],
)
async def create_role(
    request: RoleCreate,
    db: AsyncSession = Depends(get_db),
) -> RoleWithPermissions:
    return await RoleAdminService(db).create_role(request)


@router.get(
    "/roles/{role_id}",
    response_model=RoleWithPermissions,
    dependencies=[Depends(require_permissions(["core.roles.view"]))],
)
async def get_role(
    role_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> RoleWithPermissions:
    return await RoleAdminService(db).get_role(role_id)


@router.patch(
    "/roles/{role_id}",
    response_model=RoleWithPermissions,
    dependencies=[Depends(require_permissions(["core.roles.manage"]))],
)
async def update_role(
    role_id: UUID,
    request: RoleUpdate,
    db: AsyncSession = Depends(get_db),
) -> RoleWithPermissions:
    return await RoleAdminService(db).update_role(role_id, request)


@router.delete(
    "/roles/{role_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions(["core.roles.manage"]))],
)
async def delete_role(
    role_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """
    删除角色

    - 超级管理员角色不可删除
    - 删除后全部权限缓存失效
    """
    await RoleAdminService(db).delete_role(role_id)
    return MessageResponse(message="Role deleted successfully")


@router.put(
    "/roles/{role_id}/permissions",
    response_model=RoleWithPermissions,
    dependencies=[Depends(require_permissions(["core.roles.manage"]))],
)
async def sync_role_permissions(
    role_id: UUID,
    request: RolePermissionSync,
    db: AsyncSession = Depends(get_db),
) -> RoleWithPermissions:
    return await RoleAdminService(db).sync_permissions(role_id, request.permission_ids)


@router.post(
    "/users/{user_id}/roles",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions(["core.roles.manage"]))],
)
async def manage_user_roles(
    user_id: UUID,
    request: RoleAssignment,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """
    分配/移除用户直接角色

    - action: "add" 或 "remove"
    - 角色变更后由 Service 失效该用户的直接角色权限缓存
    """
    service = RoleAdminService(db)

    if request.action == "add":
        await service.assign_roles(user_id, request.role_ids)
        action_msg = "assigned"
    else:
        await service.remove_roles(user_id, request.role_ids)
        action_msg = "removed"

    return MessageResponse(message=f"Roles {action_msg} successfully")
