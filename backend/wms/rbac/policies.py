"""Database-side enforcement generated from the Python permission matrix.

The application guards and the Postgres row-level policies read the same
definitions (Capability, AccessLevel ranks, GLOBAL_WAREHOUSE_ACCESS_ROLES,
WarehouseCode), so the two enforcement layers cannot drift.  Migration 0002
executes `auth_policy_statements()`; collaborator tables that carry a
warehouse column get their policies from `warehouse_row_policy()` (printed
by `python -m wms.cli policy-sql <table>`).

The acting user is read from the `wms.user_id` setting, which the API layer
sets per transaction:  SET LOCAL wms.user_id = '<uuid>'.

Generated functions:
  wms_access_rank(jsonb)                      stored value → merge rank
  wms_get_user_permissions(user_id)           merged {capability: value}
  wms_has_permission(user_id, cap, all)       capability check
  wms_has_warehouse_access(user_id, code)     warehouse isolation
  wms_get_user_warehouses(user_id)            accessible warehouse codes
"""

from __future__ import annotations

import json

from wms.rbac.matrix import (
    GLOBAL_WAREHOUSE_ACCESS_ROLES,
    AccessLevel,
    Capability,
    WarehouseCode,
)

CURRENT_USER_SQL = "current_setting('wms.user_id', true)"

ROLES_TABLE = "wms_roles"
USERS_TABLE = "wms_users"
USER_ROLES_TABLE = "wms_user_roles"
USER_WAREHOUSES_TABLE = "wms_user_warehouses"
SNAPSHOTS_TABLE = "wms_permission_snapshots"

FUNCTION_NAMES = (
    "wms_access_rank(jsonb)",
    "wms_get_user_permissions(text)",
    "wms_has_permission(text, text, boolean)",
    "wms_has_warehouse_access(text, text)",
    "wms_get_user_warehouses(text)",
)

TRIGGER_FUNCTION_NAMES = (
    "wms_drop_user_snapshot()",
    "wms_drop_role_holder_snapshots()",
)


def _sql_list(values) -> str:
    return ", ".join(f"'{v}'" for v in sorted(values))


def _global_roles_sql() -> str:
    return _sql_list(r.value for r in GLOBAL_WAREHOUSE_ACCESS_ROLES)


def _rank_cases() -> str:
    cases = []
    for level in sorted(AccessLevel, key=lambda lvl: lvl.rank):
        if level.rank == 0:
            continue
        literal = json.dumps(level.to_json())
        cases.append(f"        WHEN p_value = '{literal}'::jsonb THEN {level.rank}")
    return "\n".join(cases)


def _held_global_role(user_expr: str) -> str:
    return f"""EXISTS (
        SELECT 1 FROM {USER_ROLES_TABLE} wur
        JOIN {ROLES_TABLE} wr ON wur.role_id = wr.id
        WHERE wur.user_id = {user_expr}
        AND wr.name IN ({_global_roles_sql()})
    )"""


# ── Functions ───────────────────────────────────────────────

def function_statements() -> list[str]:
    all_rank = AccessLevel.ALL.rank
    basic_rank = AccessLevel.GRANTED.rank
    return [
        f"""CREATE OR REPLACE FUNCTION wms_access_rank(p_value JSONB) RETURNS INTEGER AS $$
    SELECT CASE
{_rank_cases()}
        ELSE 0
    END
$$ LANGUAGE sql IMMUTABLE""",
        f"""CREATE OR REPLACE FUNCTION wms_get_user_permissions(p_user_id TEXT) RETURNS JSONB AS $$
    SELECT COALESCE(jsonb_object_agg(merged.cap, merged.val), '{{}}'::jsonb)
    FROM (
        SELECT DISTINCT ON (kv.key) kv.key AS cap, kv.value AS val
        FROM {USER_ROLES_TABLE} wur
        JOIN {ROLES_TABLE} wr ON wur.role_id = wr.id
        CROSS JOIN LATERAL jsonb_each(wr.permissions::jsonb) kv
        WHERE wur.user_id = p_user_id
        ORDER BY kv.key, wms_access_rank(kv.value) DESC
    ) merged
$$ LANGUAGE sql STABLE SECURITY DEFINER""",
        f"""CREATE OR REPLACE FUNCTION wms_has_permission(
    p_user_id TEXT,
    p_permission TEXT,
    p_require_all BOOLEAN DEFAULT false
) RETURNS BOOLEAN AS $$
    SELECT COALESCE(MAX(wms_access_rank(wr.permissions::jsonb -> p_permission)), 0)
        >= CASE WHEN p_require_all THEN {all_rank} ELSE {basic_rank} END
    FROM {USER_ROLES_TABLE} wur
    JOIN {ROLES_TABLE} wr ON wur.role_id = wr.id
    WHERE wur.user_id = p_user_id
$$ LANGUAGE sql STABLE SECURITY DEFINER""",
        f"""CREATE OR REPLACE FUNCTION wms_has_warehouse_access(
    p_user_id TEXT,
    p_warehouse_code TEXT
) RETURNS BOOLEAN AS $$
    SELECT {_held_global_role("p_user_id")}
    OR EXISTS (
        SELECT 1 FROM {USER_WAREHOUSES_TABLE}
        WHERE user_id = p_user_id
        AND warehouse_code = p_warehouse_code
    )
$$ LANGUAGE sql STABLE SECURITY DEFINER""",
        f"""CREATE OR REPLACE FUNCTION wms_get_user_warehouses(p_user_id TEXT) RETURNS TEXT[] AS $$
    SELECT CASE
        WHEN {_held_global_role("p_user_id")}
        THEN ARRAY[{_sql_list(w.value for w in WarehouseCode)}]
        ELSE ARRAY(
            SELECT warehouse_code FROM {USER_WAREHOUSES_TABLE}
            WHERE user_id = p_user_id
            ORDER BY warehouse_code
        )
    END
$$ LANGUAGE sql STABLE SECURITY DEFINER""",
    ]


# ── Row-level policies ──────────────────────────────────────

def _policy(table: str, name: str, command: str, using: str) -> list[str]:
    return [
        f'DROP POLICY IF EXISTS "{name}" ON {table}',
        f'CREATE POLICY "{name}" ON {table} FOR {command} USING ({using})',
    ]


def _can(capability: Capability, require_all: bool = False) -> str:
    flag = "true" if require_all else "false"
    return f"wms_has_permission({CURRENT_USER_SQL}, '{capability.value}', {flag})"


def auth_table_policy_statements() -> list[str]:
    """RLS for the authorization tables themselves.

    Self-service reads for one's own rows; management requires the same
    capabilities the API routes require (manage_users, system_settings).
    """
    manage_users = _can(Capability.MANAGE_USERS)
    settings = _can(Capability.SYSTEM_SETTINGS)
    statements = [
        f"ALTER TABLE {t} ENABLE ROW LEVEL SECURITY"
        for t in (USERS_TABLE, ROLES_TABLE, USER_ROLES_TABLE, USER_WAREHOUSES_TABLE)
    ]
    statements += _policy(USERS_TABLE, "Users can view own profile", "SELECT",
                          f"id = {CURRENT_USER_SQL}")
    statements += _policy(USERS_TABLE, "User managers can manage profiles", "ALL",
                          manage_users)
    statements += _policy(ROLES_TABLE, "Authenticated users can view roles", "SELECT",
                          f"{CURRENT_USER_SQL} IS NOT NULL")
    statements += _policy(ROLES_TABLE, "Only settings administrators can modify roles", "ALL",
                          settings)
    statements += _policy(USER_ROLES_TABLE, "Users can view own role assignments", "SELECT",
                          f"user_id = {CURRENT_USER_SQL}")
    statements += _policy(USER_ROLES_TABLE, "User managers can manage role assignments", "ALL",
                          manage_users)
    statements += _policy(USER_WAREHOUSES_TABLE, "Users can view own warehouse assignments", "SELECT",
                          f"user_id = {CURRENT_USER_SQL}")
    statements += _policy(USER_WAREHOUSES_TABLE, "User managers can manage warehouse assignments", "ALL",
                          manage_users)
    return statements


def warehouse_row_policy(
    table: str,
    capability: Capability = Capability.VIEW_TRANSACTIONS,
    warehouse_column: str = "warehouse",
    owner_column: str | None = "user_id",
) -> list[str]:
    """SELECT policy for a data table partitioned by warehouse.

    Mirrors `warehouse_filter()` + `ownership_filter()`: the row's warehouse
    must be accessible, the capability must be granted, and unless the
    capability is at ALL level the row must belong to the acting user.
    """
    using = (
        f"wms_has_warehouse_access({CURRENT_USER_SQL}, {warehouse_column})"
        f" AND {_can(capability)}"
    )
    if owner_column:
        using += (
            f" AND ({_can(capability, require_all=True)}"
            f" OR {owner_column} = {CURRENT_USER_SQL})"
        )
    statements = [f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY"]
    statements += _policy(
        table, f"Users can view {table} rows for accessible warehouses", "SELECT", using
    )
    return statements


# ── Snapshot invalidation ───────────────────────────────────

def snapshot_trigger_statements() -> list[str]:
    return [
        f"""CREATE OR REPLACE FUNCTION wms_drop_user_snapshot() RETURNS TRIGGER AS $$
BEGIN
    IF TG_OP IN ('UPDATE', 'DELETE') THEN
        DELETE FROM {SNAPSHOTS_TABLE} WHERE user_id = OLD.user_id;
    END IF;
    IF TG_OP IN ('INSERT', 'UPDATE') THEN
        DELETE FROM {SNAPSHOTS_TABLE} WHERE user_id = NEW.user_id;
    END IF;
    RETURN NULL;
END
$$ LANGUAGE plpgsql SECURITY DEFINER""",
        f"""CREATE OR REPLACE FUNCTION wms_drop_role_holder_snapshots() RETURNS TRIGGER AS $$
BEGIN
    DELETE FROM {SNAPSHOTS_TABLE}
    WHERE user_id IN (
        SELECT user_id FROM {USER_ROLES_TABLE} WHERE role_id = NEW.id
    );
    RETURN NULL;
END
$$ LANGUAGE plpgsql SECURITY DEFINER""",
        f"DROP TRIGGER IF EXISTS wms_user_roles_drop_snapshot ON {USER_ROLES_TABLE}",
        f"""CREATE TRIGGER wms_user_roles_drop_snapshot
    AFTER INSERT OR UPDATE OR DELETE ON {USER_ROLES_TABLE}
    FOR EACH ROW EXECUTE FUNCTION wms_drop_user_snapshot()""",
        f"DROP TRIGGER IF EXISTS wms_roles_drop_snapshots ON {ROLES_TABLE}",
        f"""CREATE TRIGGER wms_roles_drop_snapshots
    AFTER UPDATE OF permissions ON {ROLES_TABLE}
    FOR EACH ROW EXECUTE FUNCTION wms_drop_role_holder_snapshots()""",
    ]


def drop_snapshot_trigger_statements() -> list[str]:
    return [f"DROP FUNCTION IF EXISTS {name} CASCADE" for name in TRIGGER_FUNCTION_NAMES]


def auth_policy_statements() -> list[str]:
    return function_statements() + auth_table_policy_statements()


def drop_statements() -> list[str]:
    statements = []
    for table in (USERS_TABLE, ROLES_TABLE, USER_ROLES_TABLE, USER_WAREHOUSES_TABLE):
        statements.append(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")
    statements += [f"DROP FUNCTION IF EXISTS {name} CASCADE" for name in reversed(FUNCTION_NAMES)]
    return statements


def render_sql(statements: list[str]) -> str:
    return ";\n\n".join(statements) + ";\n"
