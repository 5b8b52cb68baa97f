"""
用户相关 Pydantic Schema
"""
from typing import Literal
from uuid import UUID

from pydantic import Field

from app.schemas.base import BaseSchema, IDSchema


class UserBrief(IDSchema):
    """用户摘要（用于组成员列表）"""
    email: str = Field(..., description="邮箱")
    username: str | None = Field(None, description="展示名")
    is_active: bool = Field(..., description="是否启用")


class RoleAssignment(BaseSchema):
    """角色分配请求"""
    role_ids: list[UUID] = Field(..., min_length=1, description="角色 ID 列表")
    action: Literal["add", "remove"] = Field(..., description="操作类型：add 或 remove")


class UserPermissionsRead(BaseSchema):
    """用户权限解析结果"""
    user_id: UUID
    is_super_admin: bool = Field(..., description="是否直接持有超级管理员角色")
    group_permissions: list[str] = Field(default_factory=list, description="经由用户组获得的权限")
    role_permissions: list[str] = Field(default_factory=list, description="经由直接角色获得的权限")
