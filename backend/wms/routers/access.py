"""Caller-facing access endpoints.

Endpoints:
    GET  /api/access/me                       Caller's authorization context + navigation
    POST /api/access/check                    Evaluate a requirement without raising
    POST /api/access/refresh                  Drop the cached context and rebuild it
    GET  /api/access/warehouses               Accessible warehouses (optional ?warehouse=)
    GET  /api/access/warehouses/{warehouse}   Warehouse guard check
    GET  /api/access/matrix                   Permission matrix (settings or manager tier)
"""

from fastapi import APIRouter, Depends, Query, Request

from wms.auth.deps import (
    Identity,
    enforce,
    get_authorization_context,
    get_identity,
    require_context,
    require_guard,
    require_warehouse_access,
)
from wms.rbac.audit import AuditReporter, get_audit_reporter
from wms.rbac.cache import ContextCache, get_context_cache
from wms.rbac.context import AuthorizationContext, build_context
from wms.rbac.guards import Decision, check_access, check_capability, manager_tier
from wms.rbac.matrix import (
    PERMISSION_MATRIX,
    ROLE_DESCRIPTIONS,
    AccessLevel,
    Capability,
    WarehouseCode,
    has_global_warehouse_access,
)
from wms.rbac.navigation import (
    MAIN_NAVIGATION,
    NavigationItem,
    default_redirect_path,
    filter_navigation,
    primary_role,
)
from wms.rbac.store import AuthorizationStore, get_authorization_store
from wms.rbac.warehouses import narrow_scope
from wms.schemas.access import (
    AccessCheckRequest,
    AccessCheckResponse,
    AccessContextResponse,
    MatrixResponse,
    MatrixRole,
    NavigationEntry,
    RoleInfo,
    WarehouseAccessResponse,
)

router = APIRouter()


def _navigation_entry(item: NavigationItem) -> NavigationEntry:
    return NavigationEntry(
        id=item.id,
        label=item.label,
        href=item.href,
        children=[_navigation_entry(c) for c in item.children],
    )


def _context_response(ctx: AuthorizationContext) -> AccessContextResponse:
    data = ctx.to_dict()
    roles = sorted(ctx.roles, key=lambda r: r.value)
    return AccessContextResponse(
        user_id=ctx.user_id,
        roles=[
            RoleInfo(name=r.value, display_name=r.display_name, description=ROLE_DESCRIPTIONS[r])
            for r in roles
        ],
        permissions=data["permissions"],
        warehouses=data["warehouses"],
        has_global_access=ctx.has_global_access,
        source=ctx.source,
        default_path=default_redirect_path(primary_role(ctx.roles)),
        navigation=[_navigation_entry(i) for i in filter_navigation(MAIN_NAVIGATION, ctx)],
    )


def _can_view_matrix(ctx: AuthorizationContext) -> Decision:
    decision = check_capability(ctx, Capability.SYSTEM_SETTINGS)
    return decision if decision else manager_tier(ctx)


# ── Context ──────────────────────────────────────────────────

@router.get("/me", response_model=AccessContextResponse)
async def get_my_access(
    ctx: AuthorizationContext = Depends(require_context),
):
    """Roles, effective permissions, warehouses and visible navigation."""
    return _context_response(ctx)


@router.post("/check", response_model=AccessCheckResponse)
async def check_my_access(
    payload: AccessCheckRequest,
    ctx: AuthorizationContext = Depends(get_authorization_context),
):
    """Evaluate a requirement against the caller's context.

    Advisory only: a deny is returned in the body, not raised or audited.
    """
    decision = check_access(
        ctx,
        capability=payload.capability,
        level=payload.level,
        roles=payload.roles,
        match_all=payload.match_all,
        warehouse=payload.warehouse,
    )
    return AccessCheckResponse(**decision.to_dict())


@router.post("/refresh", response_model=AccessContextResponse)
async def refresh_my_access(
    request: Request,
    identity: Identity = Depends(get_identity),
    store: AuthorizationStore = Depends(get_authorization_store),
    cache: ContextCache = Depends(get_context_cache),
    reporter: AuditReporter = Depends(get_audit_reporter),
):
    """Rebuild the caller's context after an assignment change."""
    if identity.session_id:
        await cache.invalidate_session(identity.user_id, identity.session_id)
    generation = await cache.generation(identity.user_id)
    ctx = await build_context(identity.user_id, store)
    enforce(request, ctx, check_access(ctx), reporter)
    await cache.set(ctx, identity.session_id, generation, identity.expires_at)
    return _context_response(ctx)


# ── Warehouses ───────────────────────────────────────────────

@router.get("/warehouses", response_model=list[WarehouseAccessResponse])
async def list_my_warehouses(
    warehouse: str | None = Query(None),
    ctx: AuthorizationContext = Depends(require_warehouse_access("warehouse")),
):
    """Accessible warehouses, optionally narrowed to one."""
    codes = narrow_scope(ctx.scope, warehouse.upper() if warehouse else None)
    return [
        WarehouseAccessResponse(warehouse=c.value, display_name=c.display_name)
        for c in codes
    ]


@router.get("/warehouses/{warehouse}", response_model=WarehouseAccessResponse)
async def get_warehouse_access(
    warehouse: str,
    _ctx: AuthorizationContext = Depends(require_warehouse_access("warehouse")),
):
    code = WarehouseCode(warehouse.upper())
    return WarehouseAccessResponse(warehouse=code.value, display_name=code.display_name)


# ── Matrix ───────────────────────────────────────────────────

@router.get("/matrix", response_model=MatrixResponse)
async def get_permission_matrix(
    _ctx: AuthorizationContext = Depends(require_guard(_can_view_matrix)),
):
    """The static role → capability matrix, as rendered in the settings UI."""
    return MatrixResponse(
        capabilities=[c.value for c in Capability],
        access_levels=[lvl.value for lvl in sorted(AccessLevel, key=lambda lvl: lvl.rank)],
        warehouses=[w.value for w in WarehouseCode],
        roles=[
            MatrixRole(
                name=role.value,
                display_name=role.display_name,
                description=ROLE_DESCRIPTIONS[role],
                global_warehouse_access=has_global_warehouse_access(role),
                permissions={cap.value: level.value for cap, level in row.items()},
            )
            for role, row in PERMISSION_MATRIX.items()
        ],
    )
