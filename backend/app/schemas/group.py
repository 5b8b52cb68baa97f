"""
用户组相关 Pydantic Schema
"""
from uuid import UUID

from pydantic import Field

from app.schemas.base import BaseSchema, IDSchema, TimestampSchema
from app.schemas.permission import PermissionRead
from app.schemas.role import RoleRead
from app.schemas.user import UserBrief


class GroupRead(IDSchema, TimestampSchema):
    name: str = Field(..., description="组名")
    slug: str = Field(..., description="唯一标识")
    description: str | None = Field(None, description="描述")
    member_count: int = Field(0, description="成员数")


class GroupDetail(GroupRead):
    members: list[UserBrief] = Field(default_factory=list)
    permissions: list[PermissionRead] = Field(default_factory=list)
    roles: list[RoleRead] = Field(default_factory=list)


class GroupListResponse(BaseSchema):
    items: list[GroupRead] = Field(..., description="用户组列表")
    total: int = Field(..., description="总数")
    skip: int = Field(..., description="跳过数量")
    limit: int = Field(..., description="每页数量")


class GroupCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=120, description="组名")
    slug: str | None = Field(None, max_length=140, description="唯一标识，缺省由组名派生")
    description: str | None = Field(None, description="描述")
    member_ids: list[UUID] = Field(default_factory=list, description="初始成员")
    permission_ids: list[UUID] = Field(default_factory=list, description="初始直接权限")
    role_ids: list[UUID] = Field(default_factory=list, description="初始挂载角色")


class GroupUpdate(BaseSchema):
    """字段为 None 表示不修改；列表字段给出时按整体同步处理"""
    name: str | None = Field(None, min_length=1, max_length=120)
    slug: str | None = Field(None, min_length=1, max_length=140)
    description: str | None = None
    permission_ids: list[UUID] | None = None
    role_ids: list[UUID] | None = None


class GroupMembersSync(BaseSchema):
    user_ids: list[UUID] = Field(..., description="同步后的完整成员列表")


class GroupPermissionsSync(BaseSchema):
    permission_ids: list[UUID] = Field(..., description="同步后的完整权限列表")


class GroupRolesSync(BaseSchema):
    role_ids: list[UUID] = Field(..., description="同步后的完整角色列表")


class GroupMembersChange(BaseSchema):
    user_ids: list[UUID] = Field(..., min_length=1, description="用户 ID 列表")


class GroupMembersTransfer(BaseSchema):
    user_ids: list[UUID] = Field(..., min_length=1, description="待转移的用户")
    target_group_id: UUID = Field(..., description="目标用户组")


class MemberChangeResult(BaseSchema):
    count: int = Field(..., description="实际变更人数")
    skipped: int = Field(0, description="跳过人数（已在组内/不在组内/目标组已有）")
    message: str


class GroupSizeItem(BaseSchema):
    id: UUID
    name: str
    description: str | None = None
    members: int = Field(..., description="成员数")


class GroupStats(BaseSchema):
    """用户组概览统计"""
    total_groups: int
    total_members: int = Field(..., description="至少属于一个组的用户数（去重）")
    average_members_per_group: float = Field(..., description="成员关系数 / 组数，保留一位小数")
    groups_with_permissions: int
    groups_with_roles: int
    largest_groups: list[GroupSizeItem] = Field(default_factory=list)
