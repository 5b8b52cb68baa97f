"""
权限目录服务模块
"""
from app.services.permissions.permission_admin_service import PermissionAdminService

__all__ = [
    "PermissionAdminService",
]
