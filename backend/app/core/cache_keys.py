"""缓存 Key 注册表实现。

禁止在业务代码中硬编码 Redis Key，统一从此处生成，便于失效管理。
"""

from __future__ import annotations


class CacheKeys:
    prefix = "acl"

    # ===== 权限集合 =====
    @classmethod
    def permission_set(cls, namespace: str, user_id: str) -> str:
        """
        某用户在指定命名空间下的权限集合缓存 key。
        namespace: group_perm（用户组派生） / role_perm（直接角色派生）
        """
        return f"{cls.prefix}:{namespace}:{user_id}"

    @classmethod
    def permission_set_prefix(cls, namespace: str) -> str:
        """命名空间下全部用户权限集合的前缀，用于全量清理。"""
        return f"{cls.prefix}:{namespace}:"

    # ===== 代际计数器（防止旧值复活） =====
    @classmethod
    def permission_generation(cls, namespace: str) -> str:
        """命名空间级代际号，全量失效时递增。"""
        return f"{cls.prefix}:gen:{namespace}"

    @classmethod
    def permission_user_generation(cls, namespace: str, user_id: str) -> str:
        """用户级代际号，单用户失效时递增。"""
        return f"{cls.prefix}:gen:{namespace}:{user_id}"

    # ===== 认证 =====
    @classmethod
    def token_blacklist(cls, jti: str) -> str:
        return f"{cls.prefix}:auth:access:{jti}"
