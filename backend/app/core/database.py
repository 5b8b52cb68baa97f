"""
数据库引擎与会话

表结构由 ORM 元数据直接创建（`create_tables`），不依赖迁移工具。
"""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def build_engine(url: str | None = None) -> AsyncEngine:
    db_url = url or settings.DATABASE_URL
    kwargs = {"echo": settings.DEBUG, "pool_pre_ping": True}
    # sqlite 不支持连接池参数
    if not db_url.startswith("sqlite"):
        kwargs.update(pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW)
    return create_async_engine(db_url, **kwargs)


engine = build_engine()

# 仓库只 flush，commit 由 Service 控制，因此关闭 autoflush 与提交后过期
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """按 ORM 元数据建表（已存在的表跳过）"""
    from app.models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI 依赖项: 每个请求一个 Session，未提交的写入在退出时回滚"""
    async with AsyncSessionLocal() as session:
        yield session
