"""
用户组管理 API 路由 (/api/v1/admin/groups)

端点:
- GET /admin/groups - 用户组列表（分页、搜索）[权限: groups.group.view]
- GET /admin/groups/stats - 用户组概览统计 [权限: groups.dashboard.view]
- POST /admin/groups - 创建用户组 [权限: groups.group.create]
- GET /admin/groups/{group_id} - 用户组详情 [权限: groups.group.view]
- PATCH /admin/groups/{group_id} - 更新用户组 [权限: groups.group.edit]
- DELETE /admin/groups/{group_id} - 删除用户组 [权限: groups.group.delete]
- PUT /admin/groups/{group_id}/members - 整体同步成员 [权限: groups.group.edit]
- PUT /admin/groups/{group_id}/permissions - 整体同步直接权限 [权限: groups.group.edit]
- PUT /admin/groups/{group_id}/roles - 整体同步挂载角色 [权限: groups.group.edit]
- POST /admin/groups/{group_id}/members/add - 添加成员 [权限: groups.group.add-members]
- POST /admin/groups/{group_id}/members/remove - 移除成员 [权限: groups.group.remove-members]
- POST /admin/groups/{group_id}/members/transfer - 转移成员 [权限: groups.group.transfer-members]

路由只做入参校验与鉴权，业务逻辑与缓存失效都在 Service 层。
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.deps.auth import require_permissions
from app.schemas.base import MessageResponse
from app.schemas.group import (
    GroupCreate,
    GroupDetail,
    GroupListResponse,
    GroupMembersChange,
    GroupMembersSync,
    GroupMembersTransfer,
    GroupPermissionsSync,
    GroupRolesSync,
    GroupStats,
    GroupUpdate,
    MemberChangeResult,
)
from app.services.groups import GroupAdminService, GroupMemberService

router = APIRouter(prefix="/admin/groups", tags=["Admin - Groups"])


@router.get(
    "",
    response_model=GroupListResponse,
    dependencies=[Depends(require_permissions(["groups.group.view"]))],
)
async def list_groups(
    skip: int = Query(0, ge=0, description="跳过数量"),
    limit: int = Query(20, ge=1, le=100, description="每页数量"),
    search: str | None = Query(None, description="名称/slug 模糊搜索"),
    db: AsyncSession = Depends(get_db),
) -> GroupListResponse:
    return await GroupAdminService(db).list_groups(skip=skip, limit=limit, search=search)


@router.get(
    "/stats",
    response_model=GroupStats,
    dependencies=[Depends(require_permissions(["groups.dashboard.view"]))],
)
async def get_group_stats(
    db: AsyncSession = Depends(get_db),
) -> GroupStats:
    """用户组概览统计（需在 /{group_id} 之前声明）"""
    return await GroupAdminService(db).get_stats()


@router.post(
    "",
    response_model=GroupDetail,
    status_code=201,
    dependencies=[Depends(require_permissions(["groups.group.create"]))],
)
async def create_group(
    request: GroupCreate,
    db: AsyncSession = Depends(get_db),
) -> GroupDetail:
    """
    创建用户组

    - slug 缺省时由名称派生
    - 可同时指定初始成员、直接权限、挂载角色（超级管理员角色会被忽略）
    """
    return await GroupAdminService(db).create_group(request)


@router.get(
    "/{group_id}",
    response_model=GroupDetail,
    dependencies=[Depends(require_permissions(["groups.group.view"]))],
)
async def get_group(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> GroupDetail:
    return await GroupAdminService(db).get_group(group_id)


@router.patch(
    "/{group_id}",
    response_model=GroupDetail,
    dependencies=[Depends(require_permissions(["groups.group.edit"]))],
)
async def update_group(
    group_id: UUID,
    request: GroupUpdate,
    db: AsyncSession = Depends(get_db),
) -> GroupDetail:
    return await GroupAdminService(db).update_group(group_id, request)


@router.delete(
    "/{group_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions(["groups.group.delete"]))],
)
async def delete_group(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await GroupAdminService(db).delete_group(group_id)
    return MessageResponse(message="Group deleted successfully.")


@router.put(
    "/{group_id}/members",
    response_model=GroupDetail,
    dependencies=[Depends(require_permissions(["groups.group.edit"]))],
)
async def sync_group_members(
    group_id: UUID,
    request: GroupMembersSync,
    db: AsyncSession = Depends(get_db),
) -> GroupDetail:
    return await GroupAdminService(db).sync_members(group_id, request.user_ids)


@router.put(
    "/{group_id}/permissions",
    response_model=GroupDetail,
    dependencies=[Depends(require_permissions(["groups.group.edit"]))],
)
async def sync_group_permissions(
    group_id: UUID,
    request: GroupPermissionsSync,
    db: AsyncSession = Depends(get_db),
) -> GroupDetail:
    return await GroupAdminService(db).sync_permissions(group_id, request.permission_ids)


@router.put(
    "/{group_id}/roles",
    response_model=GroupDetail,
    dependencies=[Depends(require_permissions(["groups.group.edit"]))],
)
async def sync_group_roles(
    group_id: UUID,
    request: GroupRolesSync,
    db: AsyncSession = Depends(get_db),
) -> GroupDetail:
    return await GroupAdminService(db).sync_roles(group_id, request.role_ids)


@router.post(
    "/{group_id}/members/add",
    response_model=MemberChangeResult,
    dependencies=[Depends(require_permissions(["groups.group.add-members"]))],
)
async def add_group_members(
    group_id: UUID,
    request: GroupMembersChange,
    db: AsyncSession = Depends(get_db),
) -> MemberChangeResult:
    return await GroupMemberService(db).add_members(group_id, request.user_ids)


@router.post(
    "/{group_id}/members/remove",
    response_model=MemberChangeResult,
    dependencies=[Depends(require_permissions(["groups.group.remove-members"]))],
)
async def remove_group_members(
    group_id: UUID,
    request: GroupMembersChange,
    db: AsyncSession = Depends(get_db),
) -> MemberChangeResult:
    return await GroupMemberService(db).remove_members(group_id, request.user_ids)


@router.post(
    "/{group_id}/members/transfer",
    response_model=MemberChangeResult,
    dependencies=[Depends(require_permissions(["groups.group.transfer-members"]))],
)
async def transfer_group_members(
    group_id: UUID,
    request: GroupMembersTransfer,
    db: AsyncSession = Depends(get_db),
) -> MemberChangeResult:
    return await GroupMemberService(db).transfer_members(
        group_id, request.target_group_id, request.user_ids
    )
