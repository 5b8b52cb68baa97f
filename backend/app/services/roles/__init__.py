"""
角色服务模块
"""
from app.services.roles.role_admin_service import RoleAdminService

__all__ = [
    "RoleAdminService",
]
