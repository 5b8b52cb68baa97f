from .base import Base
from .group import Group, GroupPermission, GroupRole, GroupUser
from .user import Permission, Role, RolePermission, User, UserRole

__all__ = [
    "Base",
    "Group",
    "GroupPermission",
    "GroupRole",
    "GroupUser",
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserRole",
]
