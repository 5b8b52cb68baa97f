"""
用户服务模块
"""
from app.services.users.user_permission_service import UserPermissionService

__all__ = [
    "UserPermissionService",
]
