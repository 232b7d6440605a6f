"""Authorization context: the per-request bundle every guard consumes.

build_context(user_id, store):
  1. Reject a missing identity with AuthenticationRequired.
  2. Fetch roles, warehouse assignments and the permission snapshot
     concurrently (one attempt, bounded by settings.context_build_timeout).
  3. Permissions come from exactly one strategy:
       - "snapshot": a non-empty server snapshot is the sole source
       - "merge":    otherwise the user's roles are merged locally
  4. Warehouses come from resolve_warehouses().

Any fetch failure or timeout yields a denial-safe context (no roles, every
capability DENIED, no warehouses) carrying a DatastoreUnavailable error.  A
failed read is never interpreted as broader access.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from wms.config import settings
from wms.middleware.exceptions import AuthenticationRequired, DatastoreUnavailable
from wms.rbac.matrix import (
    AccessLevel,
    Capability,
    Role,
    WarehouseCode,
)
from wms.rbac.merge import (
    denied_permissions,
    merge_permissions,
    permissions_from_snapshot,
    permissions_to_json,
)
from wms.rbac.store import AuthorizationStore
from wms.rbac.warehouses import WarehouseScope, resolve_warehouses

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationContext:
    user_id: str
    roles: frozenset[Role] = frozenset()
    permissions: Mapping[Capability, AccessLevel] = field(default_factory=denied_permissions)
    warehouses: frozenset[WarehouseCode] = frozenset()
    has_global_access: bool = False
    source: str = "merge"
    error: DatastoreUnavailable | None = None

    @classmethod
    def denial_safe(
        cls, user_id: str, error: DatastoreUnavailable | None = None
    ) -> "AuthorizationContext":
        return cls(
            user_id=user_id,
            roles=frozenset(),
            permissions=denied_permissions(),
            warehouses=frozenset(),
            has_global_access=False,
            source="denied",
            error=error or DatastoreUnavailable(),
        )

    @property
    def is_denial_safe(self) -> bool:
        return self.error is not None

    @property
    def scope(self) -> WarehouseScope:
        return WarehouseScope(self.warehouses, self.has_global_access)

    def level(self, capability: Capability) -> AccessLevel:
        return self.permissions.get(capability, AccessLevel.DENIED)

    def to_dict(self) -> dict:
        """JSON-safe form, used for the per-session cache and API payloads."""
        return {
            "user_id": self.user_id,
            "roles": sorted(r.value for r in self.roles),
            "permissions": permissions_to_json(self.permissions),
            "warehouses": sorted(w.value for w in self.warehouses),
            "has_global_access": self.has_global_access,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "AuthorizationContext":
        return cls(
            user_id=data["user_id"],
            roles=frozenset(parse_roles(data.get("roles", []))),
            permissions=permissions_from_snapshot(data.get("permissions", {})),
            warehouses=frozenset(parse_warehouses(data.get("warehouses", []))),
            has_global_access=bool(data.get("has_global_access", False)),
            source=data.get("source", "merge"),
        )


def parse_roles(names: Iterable[str]) -> list[Role]:
    roles = []
    for name in names:
        try:
            roles.append(Role(name))
        except ValueError:
            logger.warning("Ignoring unknown role %r", name)
    return roles


def parse_warehouses(codes: Iterable[str]) -> list[WarehouseCode]:
    warehouses = []
    for code in codes:
        try:
            warehouses.append(WarehouseCode(code))
        except ValueError:
            logger.warning("Ignoring unknown warehouse code %r", code)
    return warehouses


async def _fetch_all(store: AuthorizationStore, user_id: str):
    """Run the three reads together; every read finishes before any error propagates."""
    results = await asyncio.gather(
        store.fetch_roles(user_id),
        store.fetch_warehouses(user_id),
        store.fetch_permission_snapshot(user_id),
        return_exceptions=True,
    )
    errors = [r for r in results if isinstance(r, BaseException)]
    for extra in errors[1:]:
        logger.warning(f"Additional authorization read failed: {extra!r}")
    if errors:
        raise errors[0]
    return results


async def build_context(
    user_id: str | None,
    store: AuthorizationStore,
    timeout: float | None = None,
) -> AuthorizationContext:
    """Build the authorization context for `user_id`.

    Raises AuthenticationRequired when there is no identity.  Datastore
    failures never raise; they produce AuthorizationContext.denial_safe().
    """
    if not user_id:
        raise AuthenticationRequired()

    timeout = settings.context_build_timeout if timeout is None else timeout
    try:
        role_names, warehouse_codes, snapshot = await asyncio.wait_for(
            _fetch_all(store, user_id), timeout=timeout
        )
    except asyncio.TimeoutError:
        logger.error(
            "Authorization context build timed out",
            extra={"user_id": user_id, "timeout": timeout},
        )
        return AuthorizationContext.denial_safe(user_id)
    except Exception as e:
        logger.error(
            f"Error fetching authorization data: {e}",
            extra={"user_id": user_id},
        )
        return AuthorizationContext.denial_safe(user_id)

    roles = frozenset(parse_roles(role_names or []))
    scope = resolve_warehouses(roles, parse_warehouses(warehouse_codes or []))

    if snapshot:
        permissions = permissions_from_snapshot(snapshot)
        source = "snapshot"
    else:
        permissions = merge_permissions(roles)
        source = "merge"

    return AuthorizationContext(
        user_id=user_id,
        roles=roles,
        permissions=permissions,
        warehouses=scope.warehouses,
        has_global_access=scope.has_global_access,
        source=source,
    )
