"""
管理员用户权限查看 API 路由 (/api/v1/admin/users)

端点:
- GET /admin/users/{user_id}/permissions - 用户解析后的权限来源 [权限: core.users.view]
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.deps.auth import require_permissions
from app.schemas.user import UserPermissionsRead
from app.services.users import UserPermissionService

router = APIRouter(prefix="/admin", tags=["Admin - Users"])


@router.get(
    "/users/{user_id}/permissions",
    response_model=UserPermissionsRead,
    dependencies=[Depends(require_permissions(["core.users.view"]))],
)
async def get_user_permissions(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> UserPermissionsRead:
    """
    获取用户权限

    - group_permissions: 经由用户组（组直接权限 + 组挂载角色）
    - role_permissions: 经由直接角色
    - is_super_admin: 是否直接持有超级管理员角色
    """
    return await UserPermissionService(db).get_user_permissions(user_id)
