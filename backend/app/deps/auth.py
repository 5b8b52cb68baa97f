"""
Auth/ACL 依赖

认证模式（优先级从高到低）：
1. JWT Bearer Token: Authorization: Bearer <token>
2. X-User-Id Header: 内部调用/测试使用

依赖使用：
- get_current_user: 获取当前用户（支持 JWT 和 X-User-Id）
- get_current_active_user: 确保用户已启用
- require_permissions: 校验用户是否具备指定权限（支持 "xxx.*" 通配）
- get_permission_flags: 输出前端使用的 {can_xxx: 0/1}

鉴权过程中数据库出错一律拒绝（503），绝不放行。
"""
import uuid
from collections.abc import Callable, Iterable

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import PERMISSION_NAMES
from app.core.cache import cache
from app.core.cache_keys import CacheKeys
from app.core.database import get_db
from app.core.logging import logger
from app.models import User
from app.repositories import UserRepository
from app.services.authz import PermissionAuthorizer, permission_matches
from app.utils.security import decode_token


async def _get_user_from_jwt(
    token: str,
    db: AsyncSession,
) -> User:
    """从 JWT token 解析并验证用户"""
    try:
        payload = decode_token(token)
    except ValueError as e:
        logger.warning("jwt_decode_failed", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    jti = payload.get("jti")
    user_id_str = payload.get("sub")
    if not jti or not user_id_str:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 检查 token 是否在黑名单中
    if await cache.get(CacheKeys.token_blacklist(jti)):
        logger.warning("token_blacklisted", extra={"jti": jti})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return await _load_user(user_id_str, db)


async def _load_user(user_id_str: str, db: AsyncSession) -> User:
    try:
        user_uuid = uuid.UUID(user_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user id format",
        )

    user = await UserRepository(db).get_by_id(user_uuid)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> User:
    """
    获取当前用户（双模式认证）

    优先级：
    1. Authorization: Bearer <token> (JWT)
    2. X-User-Id: <uuid>
    """
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:]  # 移除 "Bearer " 前缀
        return await _get_user_from_jwt(token, db)

    if x_user_id:
        return await _load_user(x_user_id, db)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_active_user(
    user: User = Depends(get_current_user),
) -> User:
    """确保用户已启用"""
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is not activated",
        )
    return user


def _authorization_unavailable(user: User, error: Exception) -> HTTPException:
    logger.error(
        "authorization_store_error",
        extra={"user_id": str(user.id), "error": str(error)},
    )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Authorization service temporarily unavailable",
    )


def require_permissions(names: Iterable[str]) -> Callable:
    """
    生成 FastAPI 依赖，校验用户是否拥有全部指定权限。
    """
    required = set(names)

    async def _dep(
        user: User = Depends(get_current_active_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        try:
            missing = await PermissionAuthorizer(db).missing_permissions(user.id, required)
        except SQLAlchemyError as e:
            raise _authorization_unavailable(user, e)

        if missing:
            logger.warning(
                "permission_denied",
                extra={
                    "user_id": str(user.id),
                    "required": sorted(required),
                    "missing": sorted(missing),
                },
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permissions: {', '.join(sorted(missing))}",
            )
        return user

    return _dep


def _flag_name(name: str) -> str:
    return "can_" + name.replace(".", "_").replace("-", "_")


async def get_permission_flags(
    user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, int]:
    """
    将用户权限封装为 {can_xxx: 0/1} 结构，便于前端直接判断。
    只输出注册表中的权限；超级管理员全部为 1。
    """
    authorizer = PermissionAuthorizer(db)
    try:
        if await authorizer.is_super_admin(user.id):
            return {_flag_name(name): 1 for name in PERMISSION_NAMES}
        granted = await authorizer.role_permissions(user.id) | await authorizer.group_permissions(user.id)
    except SQLAlchemyError as e:
        raise _authorization_unavailable(user, e)

    return {_flag_name(name): int(permission_matches(name, granted)) for name in PERMISSION_NAMES}
