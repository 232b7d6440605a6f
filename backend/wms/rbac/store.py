"""Datastore access for the authorization core.

The context builder depends only on the read-side `AuthorizationStore`
protocol:

    fetch_roles(user_id)                → role names held by the user
    fetch_warehouses(user_id)           → explicitly assigned warehouse codes
    fetch_permission_snapshot(user_id)  → precomputed {capability: value} or None

The user administration routes also need the write side, `UserDirectory`:

    list_users()                                   → UserRecord per profile
    get_user(user_id)                              → UserRecord or None
    replace_roles(user_id, roles, assigned_by)     → swap all role rows and
                                                     rewrite the snapshot
    replace_warehouses(user_id, codes, assigned_by)

Role rows and the permission snapshot are only ever written together, in
one transaction, so a failed write cannot leave a snapshot granting more
than the committed roles do.

`SqlAuthorizationStore` implements both on the WMS tables.  The three
context reads are issued concurrently, so each call opens its own session
from the factory instead of sharing a request session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from wms.database import async_session
from wms.middleware.exceptions import ResourceNotFoundError
from wms.models.assignment import WmsUserRole, WmsUserWarehouse
from wms.models.role import WmsRole
from wms.models.snapshot import PermissionSnapshot
from wms.models.user import WmsUser
from wms.rbac.merge import snapshot_for_role_names


@dataclass
class UserRecord:
    id: str
    full_name: str | None = None
    phone: str | None = None
    is_active: bool = True
    roles: list[str] = field(default_factory=list)
    warehouses: list[str] = field(default_factory=list)
    created_at: datetime | None = None


class AuthorizationStore(Protocol):
    async def fetch_roles(self, user_id: str) -> list[str]: ...

    async def fetch_warehouses(self, user_id: str) -> list[str]: ...

    async def fetch_permission_snapshot(self, user_id: str) -> dict | None: ...


class UserDirectory(AuthorizationStore, Protocol):
    async def list_users(self) -> list[UserRecord]: ...

    async def get_user(self, user_id: str) -> UserRecord | None: ...

    async def replace_roles(
        self, user_id: str, roles: Iterable[str], assigned_by: str | None = None
    ) -> None: ...

    async def replace_warehouses(
        self, user_id: str, codes: Iterable[str], assigned_by: str | None = None
    ) -> None: ...


class SqlAuthorizationStore:
    """Authorization reads and assignment writes on the WMS schema."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def fetch_roles(self, user_id: str) -> list[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(WmsRole.name)
                .join(WmsUserRole, WmsUserRole.role_id == WmsRole.id)
                .where(WmsUserRole.user_id == user_id)
            )
            return list(result.scalars().all())

    async def fetch_warehouses(self, user_id: str) -> list[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(WmsUserWarehouse.warehouse_code).where(
                    WmsUserWarehouse.user_id == user_id
                )
            )
            return list(result.scalars().all())

    async def fetch_permission_snapshot(self, user_id: str) -> dict | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(PermissionSnapshot.permissions).where(
                    PermissionSnapshot.user_id == user_id
                )
            )
            return result.scalar_one_or_none()

    # ── User administration ─────────────────────────────────

    @staticmethod
    def _record(user: WmsUser) -> UserRecord:
        return UserRecord(
            id=user.id,
            full_name=user.full_name,
            phone=user.phone,
            is_active=user.is_active,
            roles=sorted(a.role.name for a in user.role_assignments),
            warehouses=sorted(w.warehouse_code for w in user.warehouse_assignments),
            created_at=user.created_at,
        )

    def _user_query(self):
        return select(WmsUser).options(
            selectinload(WmsUser.role_assignments).selectinload(WmsUserRole.role),
            selectinload(WmsUser.warehouse_assignments),
        )

    async def list_users(self) -> list[UserRecord]:
        async with self._session_factory() as db:
            result = await db.execute(self._user_query().order_by(WmsUser.created_at.desc()))
            return [self._record(u) for u in result.scalars().all()]

    async def get_user(self, user_id: str) -> UserRecord | None:
        async with self._session_factory() as db:
            result = await db.execute(self._user_query().where(WmsUser.id == user_id))
            user = result.scalar_one_or_none()
            return self._record(user) if user else None

    async def _require_user(self, db: AsyncSession, user_id: str) -> None:
        if await db.get(WmsUser, user_id) is None:
            raise ResourceNotFoundError("User", user_id)

    async def replace_roles(
        self, user_id: str, roles: Iterable[str], assigned_by: str | None = None
    ) -> None:
        names = set(roles)
        async with self._session_factory() as db:
            await self._require_user(db, user_id)
            result = await db.execute(select(WmsRole).where(WmsRole.name.in_(names)))
            role_rows = {r.name: r for r in result.scalars().all()}
            unseeded = names - set(role_rows)
            if unseeded:
                raise ResourceNotFoundError("Role", ", ".join(sorted(unseeded)))

            await db.execute(delete(WmsUserRole).where(WmsUserRole.user_id == user_id))
            for name in sorted(names):
                db.add(
                    WmsUserRole(
                        user_id=user_id,
                        role_id=role_rows[name].id,
                        assigned_by=assigned_by,
                    )
                )
            await db.flush()

            # The wms_user_roles trigger may already have removed the old row.
            await db.execute(
                delete(PermissionSnapshot).where(PermissionSnapshot.user_id == user_id)
            )
            db.add(
                PermissionSnapshot(
                    user_id=user_id, permissions=snapshot_for_role_names(names)
                )
            )
            await db.commit()

    async def replace_warehouses(
        self, user_id: str, codes: Iterable[str], assigned_by: str | None = None
    ) -> None:
        async with self._session_factory() as db:
            await self._require_user(db, user_id)
            await db.execute(
                delete(WmsUserWarehouse).where(WmsUserWarehouse.user_id == user_id)
            )
            for code in sorted(set(codes)):
                db.add(
                    WmsUserWarehouse(
                        user_id=user_id,
                        warehouse_code=code,
                        assigned_by=assigned_by,
                    )
                )
            await db.commit()


def get_authorization_store() -> SqlAuthorizationStore:
    """FastAPI dependency; tests override it with an in-memory store."""
    return SqlAuthorizationStore(async_session)
