from uuid import UUID

from app.repositories import GroupRepository


class GroupPermissionResolver:
    """
    计算用户经由用户组获得的权限集合：
    组直接权限 ∪ 组挂载角色的权限，按名字去重。

    纯读操作，不修改任何共享状态；没有用户组时返回空集合。
    """

    def __init__(self, group_repo: GroupRepository):
        self.group_repo = group_repo

    async def resolve(self, user_id: UUID) -> set[str]:
        return await self.group_repo.group_permission_names_for_user(user_id)
