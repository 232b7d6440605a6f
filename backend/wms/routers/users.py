"""User role and warehouse administration.

Endpoints:
    GET  /api/users                           List users with roles and warehouses
    PUT  /api/users/{user_id}/roles           Replace a user's role assignments
    PUT  /api/users/{user_id}/warehouses      Replace a user's warehouse assignments

Every route requires `manage_users`.  Granting or revoking the admin role
additionally requires the caller to be an admin.  The store rewrites the
permission snapshot in the same transaction as the role rows; once a
mutation commits every cached context for that user is dropped, so the
next request sees the change.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from wms.auth.deps import enforce, require_permission
from wms.middleware.exceptions import ResourceNotFoundError
from wms.rbac.audit import AuditReporter, get_audit_reporter
from wms.rbac.cache import ContextCache, get_context_cache
from wms.rbac.context import AuthorizationContext
from wms.rbac.guards import admin_only
from wms.rbac.matrix import Capability, Role
from wms.rbac.store import UserDirectory, UserRecord, get_authorization_store
from wms.schemas.users import RoleAssignmentUpdate, UserSummary, WarehouseAssignmentUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_user_or_404(store: UserDirectory, user_id: str) -> UserRecord:
    user = await store.get_user(user_id)
    if user is None:
        raise ResourceNotFoundError("User", user_id)
    return user


async def _drop_cached_contexts(cache: ContextCache, user_id: str) -> None:
    dropped = await cache.invalidate_user(user_id)
    logger.info(
        "Dropped cached authorization contexts",
        extra={"user_id": user_id, "cached_contexts_dropped": dropped},
    )


@router.get("", response_model=list[UserSummary])
async def list_users(
    store: UserDirectory = Depends(get_authorization_store),
    _ctx: AuthorizationContext = Depends(require_permission(Capability.MANAGE_USERS)),
):
    return [UserSummary.model_validate(u) for u in await store.list_users()]


@router.put("/{user_id}/roles", response_model=UserSummary)
async def replace_user_roles(
    user_id: str,
    payload: RoleAssignmentUpdate,
    request: Request,
    store: UserDirectory = Depends(get_authorization_store),
    cache: ContextCache = Depends(get_context_cache),
    reporter: AuditReporter = Depends(get_audit_reporter),
    ctx: AuthorizationContext = Depends(require_permission(Capability.MANAGE_USERS)),
):
    """Replace all of a user's roles with `payload.roles`."""
    if user_id == ctx.user_id:
        raise HTTPException(status_code=400, detail="Cannot change your own roles")

    target = await _get_user_or_404(store, user_id)
    requested = set(payload.roles)
    if Role.ADMIN in requested or Role.ADMIN.value in target.roles:
        enforce(request, ctx, admin_only(ctx), reporter)

    await store.replace_roles(user_id, [r.value for r in requested], assigned_by=ctx.user_id)
    await _drop_cached_contexts(cache, user_id)
    logger.info(
        "User roles replaced",
        extra={
            "user_id": user_id,
            "assigned_by": ctx.user_id,
            "from": target.roles,
            "to": sorted(r.value for r in requested),
        },
    )
    return UserSummary.model_validate(await _get_user_or_404(store, user_id))


@router.put("/{user_id}/warehouses", response_model=UserSummary)
async def replace_user_warehouses(
    user_id: str,
    payload: WarehouseAssignmentUpdate,
    store: UserDirectory = Depends(get_authorization_store),
    cache: ContextCache = Depends(get_context_cache),
    ctx: AuthorizationContext = Depends(require_permission(Capability.MANAGE_USERS)),
):
    """Replace all of a user's explicit warehouse assignments."""
    target = await _get_user_or_404(store, user_id)
    codes = sorted({w.value for w in payload.warehouse_codes})

    await store.replace_warehouses(user_id, codes, assigned_by=ctx.user_id)
    await _drop_cached_contexts(cache, user_id)
    logger.info(
        "User warehouses replaced",
        extra={
            "user_id": user_id,
            "assigned_by": ctx.user_id,
            "from": target.warehouses,
            "to": codes,
        },
    )
    return UserSummary.model_validate(await _get_user_or_404(store, user_id))
