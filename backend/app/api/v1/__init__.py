"""
v1 路由聚合
"""

from app.api.v1.admin import groups_router as admin_groups_router
from app.api.v1.admin import permissions_router as admin_permissions_router
from app.api.v1.admin import roles_router as admin_roles_router
from app.api.v1.admin import users_router as admin_users_router
from app.api.v1.users_route import router as users_router

__all__ = [
    "admin_groups_router",
    "admin_permissions_router",
    "admin_roles_router",
    "admin_users_router",
    "users_router",
]
