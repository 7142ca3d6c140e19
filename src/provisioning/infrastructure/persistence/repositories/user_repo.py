"""Operator account repository implementation."""

from __future__ import annotations

from sqlalchemy import select, update

from provisioning.domain.models.user import Role, User
from provisioning.domain.ports.repositories import UserRepository
from provisioning.infrastructure.persistence.models import UserORM
from provisioning.infrastructure.persistence.repositories.request_repo import SessionScope


class PostgresUserRepository(UserRepository):
    """PostgreSQL implementation of UserRepository."""

    def __init__(self, session_scope: SessionScope) -> None:
        self._session_scope = session_scope

    async def save(self, user: User) -> User:
        async with self._session_scope() as session:
            session.add(self._to_orm(user))
            await session.flush()
        return user

    async def get_by_id(self, user_id: str) -> User | None:
        return await self._get_one(UserORM.id == user_id)

    async def get_by_username(self, username: str) -> User | None:
        return await self._get_one(UserORM.username == username)

    async def list_by_tenant(self, tenant_id: str) -> list[User]:
        async with self._session_scope() as session:
            result = await session.execute(
                select(UserORM)
                .where(UserORM.tenant_id == tenant_id)
                .order_by(UserORM.username.asc())
            )
            return [self._to_domain(orm) for orm in result.scalars().all()]

    async def update(self, user: User) -> User:
        async with self._session_scope() as session:
            await session.execute(
                update(UserORM).where(UserORM.id == user.id).values(
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=user.role.value,
                    is_active=user.is_active,
                    version=user.version,
                )
            )
        return user

    async def _get_one(self, clause) -> User | None:
        async with self._session_scope() as session:
            result = await session.execute(select(UserORM).where(clause))
            orm = result.scalar_one_or_none()
            return self._to_domain(orm) if orm else None

    def _to_orm(self, user: User) -> UserORM:
        return UserORM(
            id=user.id,
            username=user.username,
            email=user.email,
            hashed_password=user.hashed_password,
            role=user.role.value,
            tenant_id=user.tenant_id,
            is_active=user.is_active,
            version=user.version,
        )

    def _to_domain(self, orm: UserORM) -> User:
        return User(
            id=orm.id,
            username=orm.username,
            email=orm.email,
            hashed_password=orm.hashed_password,
            role=Role(orm.role),
            tenant_id=orm.tenant_id,
            is_active=orm.is_active,
            version=orm.version,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )
