"""
Admin API 路由包
"""
from app.api.v1.admin.groups_route import router as groups_router
from app.api.v1.admin.permissions_route import router as permissions_router
from app.api.v1.admin.roles_route import router as roles_router
from app.api.v1.admin.users_route import router as users_router

__all__ = [
    "groups_router",
    "permissions_router",
    "roles_router",
    "users_router",
]
