"""
角色相关 Pydantic Schema
"""
from uuid import UUID

from pydantic import Field

from app.schemas.base import BaseSchema, IDSchema


class RoleRead(IDSchema):
    """角色读取响应"""
    name: str = Field(..., description="角色名称")
    description: str | None = Field(None, description="角色描述")


class RoleWithPermissions(RoleRead):
    permissions: list[str] = Field(default_factory=list, description="权限名列表")


class RoleCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=80, description="角色名称")
    description: str | None = Field(None, description="角色描述")
    permission_ids: list[UUID] = Field(default_factory=list, description="初始权限")


class RoleUpdate(BaseSchema):
    name: str | None = Field(None, min_length=1, max_length=80, description="角色名称")
    description: str | None = Field(None, description="角色描述")


class RolePermissionSync(BaseSchema):
    permission_ids: list[UUID] = Field(..., description="同步后的完整权限 ID 列表")
