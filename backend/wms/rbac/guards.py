"""Guard evaluators: pure allow/deny decisions over an AuthorizationContext.

Primitives
    check_capability(ctx, capability, level)   capability at a minimum level
    check_roles(ctx, roles, match_all)         any-of / all-of role membership
    check_warehouse(ctx, code)                 warehouse in the accessible set

Presets (built only on check_roles)
    admin_only, manager_tier, supervisor_tier

Composite
    check_access(ctx, ...)   roles → capability → warehouse, first deny wins

Guards never raise and never log; the same decision drives UI render
suppression and API rejection.  `Decision.raise_for_denial()` turns a deny
into the matching exception for API handlers (see wms.auth.deps).

Requirement levels:
    BASIC → satisfied by granted, own or all
    ALL   → satisfied only by all
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

from fastapi import status

from wms.middleware.exceptions import (
    DatastoreUnavailable,
    PermissionDenied,
    RoleDenied,
    WarehouseAccessDenied,
    WMSException,
)
from wms.rbac.context import AuthorizationContext
from wms.rbac.matrix import (
    ADMIN_ROLES,
    MANAGER_ROLES,
    SUPERVISOR_ROLES,
    AccessLevel,
    Capability,
    Role,
    WarehouseCode,
    to_capability,
    to_roles,
)


class Requirement(str, enum.Enum):
    BASIC = "basic"
    ALL = "all"


class ReasonCode(str, enum.Enum):
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    ROLE_DENIED = "ROLE_DENIED"
    WAREHOUSE_ACCESS_DENIED = "WAREHOUSE_ACCESS_DENIED"
    DATASTORE_UNAVAILABLE = "DATASTORE_UNAVAILABLE"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: ReasonCode | None = None
    status_code: int = status.HTTP_200_OK
    message: str | None = None
    # capability name, sorted role names, or warehouse code
    missing: str | tuple[str, ...] | None = None
    match_all: bool = False

    def __bool__(self) -> bool:
        return self.allowed

    def to_exception(self) -> WMSException | None:
        if self.allowed:
            return None
        if self.reason is ReasonCode.PERMISSION_DENIED:
            return PermissionDenied(str(self.missing), self.message)
        if self.reason is ReasonCode.ROLE_DENIED:
            return RoleDenied(self.missing or (), self.match_all)
        if self.reason is ReasonCode.WAREHOUSE_ACCESS_DENIED:
            return WarehouseAccessDenied(str(self.missing))
        return DatastoreUnavailable()

    def raise_for_denial(self) -> None:
        exc = self.to_exception()
        if exc is not None:
            raise exc

    def to_dict(self) -> dict:
        data: dict = {"allowed": self.allowed}
        if not self.allowed:
            data.update(
                code=self.reason.value if self.reason else None,
                status=self.status_code,
                message=self.message,
            )
        return data


ALLOW = Decision(allowed=True)


def _unavailable() -> Decision:
    return Decision(
        allowed=False,
        reason=ReasonCode.DATASTORE_UNAVAILABLE,
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Failed to verify permissions",
    )


def satisfies(level: AccessLevel, requirement: Requirement = Requirement.BASIC) -> bool:
    if requirement is Requirement.ALL:
        return level is AccessLevel.ALL
    return level.is_granted


# ── Primitives ──────────────────────────────────────────────

def check_capability(
    ctx: AuthorizationContext,
    capability: Capability | str,
    level: Requirement = Requirement.BASIC,
) -> Decision:
    cap = to_capability(capability)
    if ctx.is_denial_safe:
        return _unavailable()
    if satisfies(ctx.level(cap), Requirement(level)):
        return ALLOW
    return Decision(
        allowed=False,
        reason=ReasonCode.PERMISSION_DENIED,
        status_code=status.HTTP_403_FORBIDDEN,
        message=f"Missing required permission: {cap.value}",
        missing=cap.value,
    )


def check_roles(
    ctx: AuthorizationContext,
    roles: Iterable[Role | str],
    match_all: bool = False,
) -> Decision:
    required = to_roles(roles)
    if ctx.is_denial_safe:
        return _unavailable()
    if not required:
        return ALLOW
    held = required <= ctx.roles if match_all else bool(required & ctx.roles)
    if held:
        return ALLOW
    names = tuple(sorted(r.value for r in required))
    return Decision(
        allowed=False,
        reason=ReasonCode.ROLE_DENIED,
        status_code=status.HTTP_403_FORBIDDEN,
        message=f"Requires {'all' if match_all else 'one'} of: {', '.join(names)}",
        missing=names,
        match_all=match_all,
    )


def check_warehouse(
    ctx: AuthorizationContext,
    code: WarehouseCode | str,
) -> Decision:
    if ctx.is_denial_safe:
        return _unavailable()
    if ctx.scope.allows(code):
        return ALLOW
    code_str = str(getattr(code, "value", code))
    return Decision(
        allowed=False,
        reason=ReasonCode.WAREHOUSE_ACCESS_DENIED,
        status_code=status.HTTP_403_FORBIDDEN,
        message=f"You do not have access to warehouse {code_str}",
        missing=code_str,
    )


# ── Presets ─────────────────────────────────────────────────

def admin_only(ctx: AuthorizationContext) -> Decision:
    return check_roles(ctx, ADMIN_ROLES)


def manager_tier(ctx: AuthorizationContext) -> Decision:
    return check_roles(ctx, MANAGER_ROLES)


def supervisor_tier(ctx: AuthorizationContext) -> Decision:
    return check_roles(ctx, SUPERVISOR_ROLES)


# ── Composite ───────────────────────────────────────────────

def check_access(
    ctx: AuthorizationContext,
    *,
    capability: Capability | str | None = None,
    level: Requirement = Requirement.BASIC,
    roles: Iterable[Role | str] | None = None,
    match_all: bool = False,
    warehouse: WarehouseCode | str | None = None,
) -> Decision:
    """Evaluate every given requirement; the first deny wins."""
    if ctx.is_denial_safe:
        return _unavailable()
    if roles:
        decision = check_roles(ctx, roles, match_all)
        if not decision:
            return decision
    if capability is not None:
        decision = check_capability(ctx, capability, level)
        if not decision:
            return decision
    if warehouse is not None:
        decision = check_warehouse(ctx, warehouse)
        if not decision:
            return decision
    return ALLOW
