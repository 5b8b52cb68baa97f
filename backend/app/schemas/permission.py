"""
权限目录相关 Pydantic Schema
"""
from pydantic import Field

from app.schemas.base import BaseSchema, IDSchema


class PermissionRead(IDSchema):
    """权限读取响应"""
    name: str = Field(..., description="权限名（module.resource.action）")
    description: str | None = Field(None, description="权限描述")


class PermissionCreate(BaseSchema):
    name: str = Field(
        ...,
        min_length=3,
        max_length=160,
        pattern=r"^[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)+$",
        description="权限名（module.resource.action）",
    )
    description: str | None = Field(None, description="权限描述")


class PermissionUpdate(BaseSchema):
    name: str | None = Field(
        None,
        min_length=3,
        max_length=160,
        pattern=r"^[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)+$",
        description="新权限名",
    )
    description: str | None = Field(None, description="权限描述")


class PermissionResource(BaseSchema):
    """同一资源下的权限"""
    resource: str
    permissions: list[PermissionRead] = Field(default_factory=list)


class PermissionModule(BaseSchema):
    """按模块分组的权限目录"""
    module: str
    resources: list[PermissionResource] = Field(default_factory=list)


class PermissionSyncResult(BaseSchema):
    created_permissions: int = Field(0, description="新建权限数")
    created_roles: int = Field(0, description="新建角色数")
    granted: int = Field(0, description="新增的默认授权数")
