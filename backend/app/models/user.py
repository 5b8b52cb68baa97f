import uuid

from sqlalchemy import UUID as SA_UUID
from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, PivotTimestampMixin, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "user_account"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True, comment="邮箱（登录名）")
    username: Mapped[str | None] = mapped_column(String(100), nullable=True, comment="展示名")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true", comment="是否启用")

    roles: Mapped[list["Role"]] = relationship(
        "Role",
        secondary="user_role",
        back_populates="users",
        passive_deletes=True,
    )
    groups: Mapped[list["Group"]] = relationship(  # noqa: F821
        "Group",
        secondary="group_user",
        back_populates="users",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User(email={self.email})>"


class Role(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "role"

    name: Mapped[str] = mapped_column(String(80), unique=True, nullable=False, comment="角色名")
    description: Mapped[str | None] = mapped_column(Text, nullable=True, comment="描述")

    users: Mapped[list[User]] = relationship(
        "User",
        secondary="user_role",
        back_populates="roles",
        passive_deletes=True,
    )
    groups: Mapped[list["Group"]] = relationship(  # noqa: F821
        "Group",
        secondary="group_role",
        back_populates="roles",
        passive_deletes=True,
    )
    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary="role_permission",
        back_populates="roles",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Role(name={self.name})>"


class Permission(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "permission"

    name: Mapped[str] = mapped_column(String(160), unique=True, nullable=False, index=True, comment="权限名（module.resource.action）")
    description: Mapped[str | None] = mapped_column(Text, nullable=True, comment="描述")

    roles: Mapped[list[Role]] = relationship(
        "Role",
        secondary="role_permission",
        back_populates="permissions",
        passive_deletes=True,
    )
    groups: Mapped[list["Group"]] = relationship(  # noqa: F821
        "Group",
        secondary="group_permission",
        back_populates="permissions",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Permission(name={self.name})>"


class UserRole(Base, PivotTimestampMixin):
    __tablename__ = "user_role"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    role_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("role.id", ondelete="CASCADE"), primary_key=True)


class RolePermission(Base, PivotTimestampMixin):
    __tablename__ = "role_permission"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )

    role_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("role.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("permission.id", ondelete="CASCADE"), primary_key=True)
