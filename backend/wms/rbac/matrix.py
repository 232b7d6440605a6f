"""Static RBAC configuration: capabilities, access levels, roles, warehouses.

Design:
  - Every closed set (capabilities, roles, warehouse codes) is an enum so the
    API guards, UI helpers and generated database policies share one
    definition.
  - `PERMISSION_MATRIX` assigns every role an explicit `AccessLevel` for every
    capability.  `validate_matrix()` runs at import time and raises
    `MatrixConfigurationError` on any gap, so a bad matrix never reaches a
    request.
  - Roles in `GLOBAL_WAREHOUSE_ACCESS_ROLES` see every warehouse regardless
    of explicit assignments.

Access levels and their merge order:
  all (3) > own (2) > granted (1) > denied (0)

Stored role rows use the legacy JSON encoding (true / false / "own" / "all");
`AccessLevel.parse()` and `AccessLevel.to_json()` convert at that boundary.
"""

from __future__ import annotations

import enum
from typing import Mapping


class MatrixConfigurationError(RuntimeError):
    """Raised when the static permission configuration is malformed."""


class Capability(str, enum.Enum):
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_TRANSACTIONS = "view_transactions"
    CREATE_TRANSACTIONS = "create_transactions"
    EDIT_TRANSACTIONS = "edit_transactions"
    VIEW_STOCK = "view_stock"
    MANAGE_ROS = "manage_ros"
    MANAGE_USERS = "manage_users"
    VIEW_REPORTS = "view_reports"
    SYSTEM_SETTINGS = "system_settings"


class AccessLevel(str, enum.Enum):
    DENIED = "denied"
    GRANTED = "granted"
    OWN = "own"
    ALL = "all"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    @property
    def label(self) -> str:
        return _LEVEL_LABELS[self]

    @property
    def is_granted(self) -> bool:
        return self is not AccessLevel.DENIED

    def to_json(self) -> bool | str:
        """Legacy JSON encoding used in stored role and snapshot rows."""
        if self is AccessLevel.GRANTED:
            return True
        if self is AccessLevel.DENIED:
            return False
        return self.value

    @classmethod
    def parse(cls, raw: object) -> "AccessLevel":
        """Parse a stored value (bool, "own", "all" or an enum value).

        Anything unrecognised is treated as DENIED.
        """
        if raw is True:
            return cls.GRANTED
        if raw is False or raw is None:
            return cls.DENIED
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            try:
                return cls(raw.lower())
            except ValueError:
                return cls.DENIED
        return cls.DENIED


_LEVEL_RANK: dict[AccessLevel, int] = {
    AccessLevel.DENIED: 0,
    AccessLevel.GRANTED: 1,
    AccessLevel.OWN: 2,
    AccessLevel.ALL: 3,
}

_LEVEL_LABELS: dict[AccessLevel, str] = {
    AccessLevel.DENIED: "Denied",
    AccessLevel.GRANTED: "Granted",
    AccessLevel.OWN: "Own Only",
    AccessLevel.ALL: "All Access",
}


class Role(str, enum.Enum):
    STAFF = "staff"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"
    GM = "gm"
    OPS_MANAGER = "ops_manager"

    @property
    def display_name(self) -> str:
        return ROLE_DISPLAY_NAMES[self]


ROLE_DISPLAY_NAMES: dict[Role, str] = {
    Role.STAFF: "Staff",
    Role.SUPERVISOR: "Supervisor",
    Role.ADMIN: "Administrator",
    Role.GM: "General Manager",
    Role.OPS_MANAGER: "Operations Manager",
}

ROLE_DESCRIPTIONS: dict[Role, str] = {
    Role.STAFF: "Warehouse staff - create transactions, view own data",
    Role.SUPERVISOR: "Supervisor - edit transactions and view reports",
    Role.ADMIN: "Administrator - full system access",
    Role.GM: "General Manager - all data, user management, reports",
    Role.OPS_MANAGER: "Operations Manager - all data, user management, reports",
}


class WarehouseCode(str, enum.Enum):
    DDD = "DDD"
    LJBB = "LJBB"
    MBB = "MBB"
    UBB = "UBB"

    @property
    def display_name(self) -> str:
        return f"{self.value} Warehouse"


ALL_WAREHOUSES: frozenset[WarehouseCode] = frozenset(WarehouseCode)


# ── Role → capability → access level ────────────────────────

_D, _G, _O, _A = AccessLevel.DENIED, AccessLevel.GRANTED, AccessLevel.OWN, AccessLevel.ALL

PERMISSION_MATRIX: dict[Role, dict[Capability, AccessLevel]] = {
    Role.STAFF: {
        Capability.VIEW_DASHBOARD: _G,
        Capability.VIEW_TRANSACTIONS: _O,
        Capability.CREATE_TRANSACTIONS: _G,
        Capability.EDIT_TRANSACTIONS: _D,
        Capability.VIEW_STOCK: _O,
        Capability.MANAGE_ROS: _G,
        Capability.MANAGE_USERS: _D,
        Capability.VIEW_REPORTS: _D,
        Capability.SYSTEM_SETTINGS: _D,
    },
    Role.SUPERVISOR: {
        Capability.VIEW_DASHBOARD: _G,
        Capability.VIEW_TRANSACTIONS: _O,
        Capability.CREATE_TRANSACTIONS: _G,
        Capability.EDIT_TRANSACTIONS: _G,
        Capability.VIEW_STOCK: _O,
        Capability.MANAGE_ROS: _G,
        Capability.MANAGE_USERS: _D,
        Capability.VIEW_REPORTS: _G,
        Capability.SYSTEM_SETTINGS: _D,
    },
    Role.ADMIN: {
        Capability.VIEW_DASHBOARD: _G,
        Capability.VIEW_TRANSACTIONS: _A,
        Capability.CREATE_TRANSACTIONS: _G,
        Capability.EDIT_TRANSACTIONS: _G,
        Capability.VIEW_STOCK: _A,
        Capability.MANAGE_ROS: _G,
        Capability.MANAGE_USERS: _G,
        Capability.VIEW_REPORTS: _G,
        Capability.SYSTEM_SETTINGS: _G,
    },
    Role.GM: {
        Capability.VIEW_DASHBOARD: _G,
        Capability.VIEW_TRANSACTIONS: _A,
        Capability.CREATE_TRANSACTIONS: _D,
        Capability.EDIT_TRANSACTIONS: _D,
        Capability.VIEW_STOCK: _A,
        Capability.MANAGE_ROS: _G,
        Capability.MANAGE_USERS: _G,
        Capability.VIEW_REPORTS: _G,
        Capability.SYSTEM_SETTINGS: _D,
    },
    Role.OPS_MANAGER: {
        Capability.VIEW_DASHBOARD: _G,
        Capability.VIEW_TRANSACTIONS: _A,
        Capability.CREATE_TRANSACTIONS: _D,
        Capability.EDIT_TRANSACTIONS: _D,
        Capability.VIEW_STOCK: _A,
        Capability.MANAGE_ROS: _G,
        Capability.MANAGE_USERS: _G,
        Capability.VIEW_REPORTS: _G,
        Capability.SYSTEM_SETTINGS: _D,
    },
}

GLOBAL_WAREHOUSE_ACCESS_ROLES: frozenset[Role] = frozenset(
    {Role.ADMIN, Role.GM, Role.OPS_MANAGER}
)

# Named role presets used by the convenience guards.
ADMIN_ROLES: frozenset[Role] = frozenset({Role.ADMIN})
MANAGER_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.GM, Role.OPS_MANAGER})
SUPERVISOR_ROLES: frozenset[Role] = MANAGER_ROLES | {Role.SUPERVISOR}


# ── Validation ──────────────────────────────────────────────

def validate_matrix(
    matrix: Mapping[Role, Mapping[Capability, AccessLevel]],
) -> None:
    """Fail fast unless every role maps every capability to an AccessLevel."""
    missing_roles = set(Role) - set(matrix)
    if missing_roles:
        names = ", ".join(sorted(r.value for r in missing_roles))
        raise MatrixConfigurationError(f"Roles missing from matrix: {names}")

    for role, row in matrix.items():
        if not isinstance(role, Role):
            raise MatrixConfigurationError(f"Unknown role key: {role!r}")
        unknown = [c for c in row if not isinstance(c, Capability)]
        if unknown:
            raise MatrixConfigurationError(
                f"Role {role.value} defines unknown capabilities: {unknown!r}"
            )
        missing = set(Capability) - set(row)
        if missing:
            names = ", ".join(sorted(c.value for c in missing))
            raise MatrixConfigurationError(
                f"Role {role.value} has no entry for: {names}"
            )
        bad = [c.value for c, level in row.items() if not isinstance(level, AccessLevel)]
        if bad:
            raise MatrixConfigurationError(
                f"Role {role.value} has non-AccessLevel values for: {', '.join(bad)}"
            )


def to_capability(value: str | Capability) -> Capability:
    """Coerce a guard requirement to a Capability, failing fast on typos."""
    try:
        return Capability(value)
    except ValueError:
        raise MatrixConfigurationError(f"Unknown capability: {value!r}") from None


def to_roles(values) -> frozenset[Role]:
    """Coerce guard role requirements to Roles, failing fast on typos."""
    try:
        return frozenset(Role(v) for v in values)
    except ValueError as e:
        raise MatrixConfigurationError(f"Unknown role in requirement: {e}") from None


def role_permissions_json(role: Role) -> dict[str, bool | str]:
    """Render one matrix row in the stored JSON encoding (role seeding)."""
    return {cap.value: level.to_json() for cap, level in PERMISSION_MATRIX[role].items()}


def has_global_warehouse_access(role: Role) -> bool:
    return role in GLOBAL_WAREHOUSE_ACCESS_ROLES


validate_matrix(PERMISSION_MATRIX)
