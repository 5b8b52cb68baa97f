from .auth import get_current_active_user, get_current_user, get_permission_flags, require_permissions

__all__ = [
    "get_current_active_user",
    "get_current_user",
    "get_permission_flags",
    "require_permissions",
]
