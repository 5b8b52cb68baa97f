"""
鉴权核心：权限解析、通配匹配、超级管理员放行与带缓存的判定入口
"""
from app.services.authz.authorizer import PermissionAuthorizer
from app.services.authz.bypass import SuperAdminBypass, super_admin_bypass
from app.services.authz.matcher import expand_permission_patterns, permission_matches
from app.services.authz.resolver import GroupPermissionResolver

__all__ = [
    "GroupPermissionResolver",
    "PermissionAuthorizer",
    "SuperAdminBypass",
    "expand_permission_patterns",
    "permission_matches",
    "super_admin_bypass",
]
