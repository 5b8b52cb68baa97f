"""
安全工具模块：JWT 编解码
"""
import secrets
from datetime import timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from app.core.config import settings
from app.utils.time_utils import Datetime


def generate_jti() -> str:
    """生成唯一的 JWT ID"""
    return secrets.token_urlsafe(32)


def create_access_token(user_id: UUID, jti: str | None = None) -> str:
    """创建 access token，sub 为用户 ID"""
    now = Datetime.now()
    payload = {
        "sub": str(user_id),
        "jti": jti or generate_jti(),
        "type": "access",
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "iat": now,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """解码并验证 JWT token，返回 payload"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise ValueError(f"Invalid token: {e}") from e
