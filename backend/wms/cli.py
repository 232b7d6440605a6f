"""Management CLI for the authorization core.

Usage:
    python -m wms.cli matrix                          # Print the role → capability matrix
    python -m wms.cli policy-sql                      # Print functions, RLS and snapshot triggers
    python -m wms.cli policy-sql <table> [capability] # Print the warehouse row policy for a data table
    python -m wms.cli check-user <user_id> [capability] [warehouse]
    python -m wms.cli token <user_id>                 # Mint a development access token
"""

import asyncio
import sys

from wms.auth.jwt import create_access_token
from wms.database import async_session
from wms.rbac.context import build_context
from wms.rbac.guards import check_access
from wms.rbac.matrix import (
    PERMISSION_MATRIX,
    Capability,
    Role,
    has_global_warehouse_access,
    to_capability,
)
from wms.rbac.policies import (
    auth_policy_statements,
    render_sql,
    snapshot_trigger_statements,
    warehouse_row_policy,
)
from wms.rbac.store import SqlAuthorizationStore


def print_matrix():
    width = max(len(c.value) for c in Capability) + 2
    header = "".join(f"{r.value:>13}" for r in Role)
    print(f"{'capability':<{width}}{header}")
    for cap in Capability:
        row = "".join(f"{PERMISSION_MATRIX[r][cap].label:>13}" for r in Role)
        print(f"{cap.value:<{width}}{row}")
    print()
    global_roles = ", ".join(r.value for r in Role if has_global_warehouse_access(r))
    print(f"Global warehouse access: {global_roles}")


def print_policy_sql(table: str | None = None, capability: str | None = None):
    if table is None:
        print(render_sql(auth_policy_statements() + snapshot_trigger_statements()))
        return
    cap = to_capability(capability) if capability else Capability.VIEW_TRANSACTIONS
    print(render_sql(warehouse_row_policy(table, cap)))


async def check_user(user_id: str, capability: str | None = None, warehouse: str | None = None):
    store = SqlAuthorizationStore(async_session)
    ctx = await build_context(user_id, store)
    if ctx.is_denial_safe:
        print(f"  FAILED: {ctx.error.message}")
        return

    print(f"  user:       {ctx.user_id}")
    print(f"  roles:      {', '.join(sorted(r.value for r in ctx.roles)) or '(none)'}")
    print(f"  warehouses: {', '.join(ctx.scope.sorted_codes()) or '(none)'}")
    print(f"  source:     {ctx.source}")
    for cap in Capability:
        print(f"    {cap.value:<22}{ctx.level(cap).label}")

    if capability or warehouse:
        decision = check_access(
            ctx,
            capability=to_capability(capability) if capability else None,
            warehouse=warehouse.upper() if warehouse else None,
        )
        verdict = "ALLOWED" if decision else f"DENIED ({decision.reason.value}: {decision.message})"
        print(f"\n  {verdict}")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    args = sys.argv[2:]
    if cmd == "matrix":
        print_matrix()
    elif cmd == "policy-sql":
        print_policy_sql(*args[:2])
    elif cmd == "check-user" and args:
        asyncio.run(check_user(*args[:3]))
    elif cmd == "token" and args:
        print(create_access_token(args[0]))
    else:
        print("Usage: python -m wms.cli [matrix|policy-sql [table [capability]]|check-user <user_id> [capability] [warehouse]|token <user_id>]")
