"""Navigation items with permission requirements, for UI gating.

UI code builds one AuthorizationContext per session and filters the menu
synchronously.  These are render decisions only: nothing here is audited,
and the API guards still enforce the same requirements server-side.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable

from wms.rbac.context import AuthorizationContext
from wms.rbac.guards import Requirement, check_access
from wms.rbac.matrix import Capability, Role, WarehouseCode


@dataclass(frozen=True)
class NavigationItem:
    id: str
    label: str
    href: str
    required_permission: Capability | None = None
    required_roles: tuple[Role, ...] = ()
    require_all_access: bool = False
    # Shown only when the user can access at least one warehouse
    requires_warehouse: bool = False
    warehouse_code: WarehouseCode | None = None
    children: tuple["NavigationItem", ...] = field(default_factory=tuple)


def can_access_item(item: NavigationItem, ctx: AuthorizationContext) -> bool:
    if item.requires_warehouse and not ctx.warehouses:
        return False
    return bool(
        check_access(
            ctx,
            capability=item.required_permission,
            level=Requirement.ALL if item.require_all_access else Requirement.BASIC,
            roles=item.required_roles,
            warehouse=item.warehouse_code,
        )
    )


def filter_navigation(
    items: Iterable[NavigationItem],
    ctx: AuthorizationContext,
) -> list[NavigationItem]:
    """Drop inaccessible items; children are filtered recursively.

    A parent whose children are all filtered out is dropped as well.
    """
    visible = []
    for item in items:
        if not can_access_item(item, ctx):
            continue
        if item.children:
            children = filter_navigation(item.children, ctx)
            if not children:
                continue
            item = replace(item, children=tuple(children))
        visible.append(item)
    return visible


def first_accessible(
    items: Iterable[NavigationItem],
    ctx: AuthorizationContext,
) -> NavigationItem | None:
    for item in filter_navigation(items, ctx):
        return item
    return None


def _warehouse_items(prefix: str, capability: Capability) -> tuple[NavigationItem, ...]:
    return tuple(
        NavigationItem(
            id=f"{prefix}-{code.value.lower()}",
            label=code.display_name,
            href=f"/{prefix}/{code.value.lower()}",
            required_permission=capability,
            warehouse_code=code,
        )
        for code in WarehouseCode
    )


MAIN_NAVIGATION: tuple[NavigationItem, ...] = (
    NavigationItem(
        id="dashboard",
        label="Dashboard",
        href="/dashboard",
        required_permission=Capability.VIEW_DASHBOARD,
    ),
    NavigationItem(
        id="transactions",
        label="Transactions",
        href="/transactions",
        required_permission=Capability.VIEW_TRANSACTIONS,
        requires_warehouse=True,
        children=_warehouse_items("transactions", Capability.VIEW_TRANSACTIONS),
    ),
    NavigationItem(
        id="stock",
        label="Stock",
        href="/stock",
        required_permission=Capability.VIEW_STOCK,
        requires_warehouse=True,
    ),
    NavigationItem(
        id="ro",
        label="Replenishment Orders",
        href="/ro",
        required_permission=Capability.MANAGE_ROS,
    ),
    NavigationItem(
        id="reports",
        label="Reports",
        href="/reports",
        required_permission=Capability.VIEW_REPORTS,
    ),
    NavigationItem(
        id="users",
        label="User Management",
        href="/users",
        required_permission=Capability.MANAGE_USERS,
    ),
    NavigationItem(
        id="settings",
        label="Settings",
        href="/settings",
        required_permission=Capability.SYSTEM_SETTINGS,
        required_roles=(Role.ADMIN,),
    ),
)


_DEFAULT_PATHS: dict[Role, str] = {
    Role.ADMIN: "/dashboard",
    Role.GM: "/dashboard",
    Role.OPS_MANAGER: "/dashboard",
    Role.SUPERVISOR: "/transactions",
    Role.STAFF: "/transactions/my",
}


_ROLE_PRIORITY: tuple[Role, ...] = (
    Role.ADMIN,
    Role.GM,
    Role.OPS_MANAGER,
    Role.SUPERVISOR,
    Role.STAFF,
)


def primary_role(roles: Iterable[Role]) -> Role | None:
    held = set(roles)
    for role in _ROLE_PRIORITY:
        if role in held:
            return role
    return None


def default_redirect_path(role: Role | None) -> str:
    """Landing page after login for a user's primary role."""
    if role is None:
        return "/unauthorized"
    return _DEFAULT_PATHS.get(role, "/dashboard")
