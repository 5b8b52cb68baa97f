"""
权限注册表（单一真源）

新增/修改权限时仅需在此处维护，sync_registry 与前端 flags 都从这里导出。
权限名统一为 module.resource.action；默认角色授权允许使用 "xxx.*" 通配，
同步时按已注册的权限展开。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from app.core.config import settings


@dataclass(frozen=True)
class PermissionItem:
    name: str
    description: str


# 按功能模块分组便于后续维护
PERMISSION_REGISTRY: List[PermissionItem] = [
    # core
    PermissionItem("core.dashboard.view", "查看后台仪表盘"),
    PermissionItem("core.users.view", "用户查看：读取用户及其权限"),
    PermissionItem("core.users.create", "创建用户"),
    PermissionItem("core.users.edit", "编辑用户"),
    PermissionItem("core.users.delete", "删除用户"),
    PermissionItem("core.roles.view", "角色查看：读取角色与权限列表"),
    PermissionItem("core.roles.manage", "角色管理：创建、更新、删除角色并分配权限"),
    PermissionItem("core.permissions.view", "权限目录查看"),
    PermissionItem("core.permissions.manage", "权限目录维护：新增、重命名、删除、同步"),
    # groups
    PermissionItem("groups.group.view", "用户组查看"),
    PermissionItem("groups.group.create", "创建用户组"),
    PermissionItem("groups.group.edit", "编辑用户组及其权限/角色"),
    PermissionItem("groups.group.delete", "删除用户组"),
    PermissionItem("groups.group.add-members", "向用户组添加成员"),
    PermissionItem("groups.group.remove-members", "从用户组移除成员"),
    PermissionItem("groups.group.transfer-members", "在用户组之间转移成员"),
    PermissionItem("groups.dashboard.view", "查看用户组概览"),
]

SUPER_ADMIN_ROLE = settings.SUPER_ADMIN_ROLE

# 默认角色定义（Super Admin 不需要授权，鉴权时直接放行）
DEFAULT_ROLES: dict[str, str] = {
    SUPER_ADMIN_ROLE: "超级管理员，绕过全部权限校验",
    "Administrator": "系统管理员，默认持有全部后台权限",
    "Manager": "管理人员，可查看用户与仪表盘",
    "Staff": "普通员工，基础访问角色",
    "Auditor": "审计人员，只读访问",
}

# 默认角色授权（支持通配）
DEFAULT_ROLE_GRANTS: dict[str, tuple[str, ...]] = {
    "Administrator": ("core.*", "groups.group.*", "groups.dashboard.view"),
    "Manager": ("core.dashboard.view", "core.users.view", "groups.group.view"),
    "Staff": ("core.dashboard.view",),
    "Auditor": ("core.dashboard.view", "core.users.view", "core.roles.view", "core.permissions.view"),
}

PERMISSION_NAMES: tuple[str, ...] = tuple(p.name for p in PERMISSION_REGISTRY)
