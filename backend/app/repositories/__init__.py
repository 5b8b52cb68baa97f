from .base import BaseRepository
from .group_repository import GroupRepository
from .permission_repository import PermissionRepository
from .role_repository import RoleRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "GroupRepository",
    "PermissionRepository",
    "RoleRepository",
    "UserRepository",
]
