"""
用户权限查看服务：展示某个用户解析后的权限来源
"""
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories import UserRepository
from app.schemas.user import UserPermissionsRead
from app.services.authz import PermissionAuthorizer


class UserPermissionService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)
        self.authorizer = PermissionAuthorizer(db)

    async def get_user_permissions(self, user_id: UUID) -> UserPermissionsRead:
        if not await self.user_repo.get_by_id(user_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        return UserPermissionsRead(
            user_id=user_id,
            is_super_admin=await self.authorizer.is_super_admin(user_id),
            group_permissions=sorted(await self.authorizer.group_permissions(user_id)),
            role_permissions=sorted(await self.authorizer.role_permissions(user_id)),
        )
