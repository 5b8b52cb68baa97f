import uuid

from sqlalchemy import UUID as SA_UUID
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, PivotTimestampMixin, TimestampMixin, UUIDPrimaryKeyMixin
from .user import Permission, Role, User


class Group(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    用户组：成员共享组上的直接权限与挂载角色的权限。
    slug 只在创建时由 name 派生，之后改名不会重新生成。
    """
    __tablename__ = "groups"

    name: Mapped[str] = mapped_column(String(120), nullable=False, comment="组名")
    slug: Mapped[str] = mapped_column(String(140), unique=True, nullable=False, index=True, comment="唯一标识（创建时由组名派生）")
    description: Mapped[str | None] = mapped_column(Text, nullable=True, comment="描述")

    users: Mapped[list[User]] = relationship(
        "User",
        secondary="group_user",
        back_populates="groups",
        passive_deletes=True,
    )
    permissions: Mapped[list[Permission]] = relationship(
        "Permission",
        secondary="group_permission",
        back_populates="groups",
        passive_deletes=True,
    )
    roles: Mapped[list[Role]] = relationship(
        "Role",
        secondary="group_role",
        back_populates="groups",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Group(slug={self.slug})>"


class GroupUser(Base, PivotTimestampMixin):
    __tablename__ = "group_user"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_user"),
    )

    group_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True, index=True)


class GroupPermission(Base, PivotTimestampMixin):
    __tablename__ = "group_permission"
    __table_args__ = (
        UniqueConstraint("group_id", "permission_id", name="uq_group_permission"),
    )

    group_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("permission.id", ondelete="CASCADE"), primary_key=True)


class GroupRole(Base, PivotTimestampMixin):
    __tablename__ = "group_role"
    __table_args__ = (
        UniqueConstraint("group_id", "role_id", name="uq_group_role"),
    )

    group_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    role_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("role.id", ondelete="CASCADE"), primary_key=True)
