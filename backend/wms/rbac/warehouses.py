"""Warehouse isolation.

`resolve_warehouses()` decides which warehouse partitions a user may touch:
  1. Any role in GLOBAL_WAREHOUSE_ACCESS_ROLES → every warehouse code.
  2. Otherwise exactly the user's explicit assignments (possibly none).

An empty scope means *no access*.  The query helpers below translate that
into a `false()` clause so a consuming query returns zero rows rather than
dropping the filter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from sqlalchemy import false, true
from sqlalchemy.sql.elements import ColumnElement

from wms.middleware.exceptions import WarehouseAccessDenied
from wms.rbac.matrix import (
    ALL_WAREHOUSES,
    GLOBAL_WAREHOUSE_ACCESS_ROLES,
    AccessLevel,
    Capability,
    Role,
    WarehouseCode,
)

if TYPE_CHECKING:
    from wms.rbac.context import AuthorizationContext


@dataclass(frozen=True)
class WarehouseScope:
    warehouses: frozenset[WarehouseCode]
    has_global_access: bool = False

    @property
    def has_access(self) -> bool:
        return bool(self.warehouses)

    def allows(self, code: WarehouseCode | str) -> bool:
        try:
            return WarehouseCode(code) in self.warehouses
        except ValueError:
            return False

    def sorted_codes(self) -> list[str]:
        return sorted(w.value for w in self.warehouses)


NO_WAREHOUSES = WarehouseScope(frozenset(), False)


def resolve_warehouses(
    roles: Iterable[Role],
    assigned: Iterable[WarehouseCode],
) -> WarehouseScope:
    """Return the warehouse scope for a role set and explicit assignments."""
    if any(role in GLOBAL_WAREHOUSE_ACCESS_ROLES for role in roles):
        return WarehouseScope(ALL_WAREHOUSES, has_global_access=True)
    return WarehouseScope(frozenset(assigned), has_global_access=False)


def narrow_scope(
    scope: WarehouseScope,
    requested: WarehouseCode | str | None = None,
) -> list[WarehouseCode]:
    """Validate an optional requested warehouse against a scope.

    No request → every accessible warehouse.  A request outside the scope
    raises WarehouseAccessDenied.
    """
    if requested is None:
        return sorted(scope.warehouses, key=lambda w: w.value)
    if not scope.allows(requested):
        raise WarehouseAccessDenied(str(getattr(requested, "value", requested)))
    return [WarehouseCode(requested)]


# ── SQLAlchemy filters ──────────────────────────────────────

def warehouse_filter(column, scope: WarehouseScope) -> ColumnElement[bool]:
    """Boolean clause restricting `column` to the scope.

    Usage:
        stmt = select(Transaction).where(
            warehouse_filter(Transaction.warehouse, ctx.scope)
        )
    """
    if not scope.warehouses:
        return false()
    if scope.has_global_access or scope.warehouses == ALL_WAREHOUSES:
        return true()
    return column.in_(scope.sorted_codes())


def ownership_filter(
    column,
    context: "AuthorizationContext",
    capability: Capability,
) -> ColumnElement[bool]:
    """Restrict rows to the acting user unless the capability is ALL.

    A DENIED capability yields `false()`.
    """
    level = context.level(capability)
    if level is AccessLevel.ALL:
        return true()
    if not level.is_granted:
        return false()
    return column == context.user_id
