"""
用户组服务模块
"""
from app.services.groups.group_admin_service import GroupAdminService
from app.services.groups.group_member_service import GroupMemberService

__all__ = [
    "GroupAdminService",
    "GroupMemberService",
]
