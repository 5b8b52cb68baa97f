"""
用户自助 API 路由 (/api/v1/users)

端点:
- GET /users/me/permissions - 当前用户的权限 flags {can_xxx: 0/1}
"""
from fastapi import APIRouter, Depends

from app.deps.auth import get_permission_flags

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me/permissions", response_model=dict[str, int])
async def get_my_permissions(
    flags: dict[str, int] = Depends(get_permission_flags),
) -> dict[str, int]:
    """
    获取当前用户的权限标记

    只包含注册表中的权限，前端据此控制菜单与按钮。
    """
    return flags
