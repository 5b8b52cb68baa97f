"""
Admin Authz Service - FastAPI Application Entry Point

启动命令:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core import AsyncSessionLocal, cache, settings, setup_logging
from app.core.database import create_tables
from app.core.logging import logger

# 设置日志
setup_logging()


async def bootstrap_permissions() -> None:
    """把权限注册表与默认角色写入数据库"""
    from app.services.permissions import PermissionAdminService

    async with AsyncSessionLocal() as session:
        await PermissionAdminService(session).sync_registry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期：缓存连接、可选建表与权限注册表同步"""
    logger.info(
        "application_startup",
        extra={"project": settings.PROJECT_NAME, "environment": settings.ENVIRONMENT},
    )
    try:
        cache.init()
    except Exception as exc:
        # 缓存不可用时权限判定直接回源数据库
        logger.warning("cache_init_failed", extra={"error": str(exc)})

    if settings.DB_CREATE_TABLES_ON_STARTUP:
        await create_tables()
    if settings.PERMISSION_SYNC_ON_STARTUP:
        await bootstrap_permissions()

    yield

    await cache.close()
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=settings.BACKEND_CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.BACKEND_CORS_ALLOW_METHODS,
        allow_headers=settings.BACKEND_CORS_ALLOW_HEADERS,
    )

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    """注册鉴权管理相关路由（均挂在 API_V1_STR 下）"""
    from app.api.v1 import (
        admin_groups_router,
        admin_permissions_router,
        admin_roles_router,
        admin_users_router,
        users_router,
    )

    for router in (
        users_router,
        admin_users_router,
        admin_roles_router,
        admin_permissions_router,
        admin_groups_router,
    ):
        app.include_router(router, prefix=settings.API_V1_STR)


app = create_app()


def run():
    """脚本入口点"""
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
