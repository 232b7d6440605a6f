"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_identity                   → decode the bearer JWT into an Identity
  get_authorization_context      → cached-or-built AuthorizationContext
  require_context                → any usable context (denies a denial-safe one)
  require_permission(...)        → capability at a minimum level
  require_role(...)              → any-of / all-of role membership
  require_warehouse_access(...)  → warehouse path/query parameter in scope
  require_admin / require_manager / require_supervisor → role presets

Each require_* factory runs before the handler body.  On deny it reports
the event to the audit reporter and raises the matching WMSException,
which the registered exception handlers render as
{"error": {"code": ..., "message": ...}}.
"""

from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from wms.auth.jwt import decode_token
from wms.middleware.exceptions import AuthenticationRequired
from wms.rbac.audit import AuditReporter, DenialEvent, get_audit_reporter
from wms.rbac.cache import ContextCache, get_context_cache
from wms.rbac.context import AuthorizationContext, build_context
from wms.rbac.guards import (
    Decision,
    ReasonCode,
    Requirement,
    admin_only,
    check_access,
    check_capability,
    check_roles,
    check_warehouse,
    manager_tier,
    supervisor_tier,
)
from wms.rbac.matrix import Capability, Role, to_capability, to_roles
from wms.rbac.store import AuthorizationStore, get_authorization_store

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: str
    session_id: str | None = None
    expires_at: float | None = None


# ── Identity ────────────────────────────────────────────────

async def get_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    reporter: AuditReporter = Depends(get_audit_reporter),
) -> Identity:
    """Resolve the caller's identity or raise AuthenticationRequired."""
    payload = decode_token(credentials.credentials) if credentials else {}
    user_id = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        exc = AuthenticationRequired()
        reporter.record_denial(
            DenialEvent.from_request(request, None, exc.error_code, exc.message)
        )
        raise exc
    return Identity(
        user_id=user_id,
        session_id=payload.get("sid"),
        expires_at=payload.get("exp"),
    )


# ── Authorization context ───────────────────────────────────

async def get_authorization_context(
    request: Request,
    identity: Identity = Depends(get_identity),
    store: AuthorizationStore = Depends(get_authorization_store),
    cache: ContextCache = Depends(get_context_cache),
) -> AuthorizationContext:
    """Return the caller's context, reusing this session's cached copy."""
    generation = await cache.generation(identity.user_id)
    ctx = await cache.get(identity.user_id, identity.session_id, generation)
    if ctx is None:
        ctx = await build_context(identity.user_id, store)
        await cache.set(ctx, identity.session_id, generation, identity.expires_at)
    request.state.authz = ctx
    return ctx


def enforce(
    request: Request,
    ctx: AuthorizationContext,
    decision: Decision,
    reporter: AuditReporter,
) -> None:
    """Audit and raise when `decision` is a deny."""
    if decision:
        return
    reason = decision.reason or ReasonCode.PERMISSION_DENIED
    reporter.record_denial(
        DenialEvent.from_request(
            request, ctx.user_id, reason.value, decision.message or reason.value
        )
    )
    decision.raise_for_denial()


def require_guard(guard: Callable[[AuthorizationContext], Decision]):
    """Dependency factory wrapping any context → Decision function."""

    async def _check(
        request: Request,
        ctx: AuthorizationContext = Depends(get_authorization_context),
        reporter: AuditReporter = Depends(get_audit_reporter),
    ) -> AuthorizationContext:
        enforce(request, ctx, guard(ctx), reporter)
        return ctx

    return _check


# ── Guard factories ─────────────────────────────────────────

def require_permission(
    capability: Capability | str,
    level: Requirement = Requirement.BASIC,
):
    """Dependency factory: restrict to a capability at a minimum level.

    Usage:
        @router.get("/transactions")
        async def list_transactions(
            ctx: AuthorizationContext = Depends(
                require_permission(Capability.VIEW_TRANSACTIONS)
            ),
        ):
            ...
    """
    cap = to_capability(capability)
    return require_guard(lambda ctx: check_capability(ctx, cap, level))


def require_role(*roles: Role | str, match_all: bool = False):
    """Dependency factory: restrict to one (or all) of the listed roles."""
    required = to_roles(roles)
    return require_guard(lambda ctx: check_roles(ctx, required, match_all))


def require_warehouse_access(param: str = "warehouse"):
    """Dependency factory: the `param` path or query value must be in scope.

    A request without the parameter still needs a usable context; handlers
    then filter by the whole accessible set.
    """

    async def _check(
        request: Request,
        ctx: AuthorizationContext = Depends(get_authorization_context),
        reporter: AuditReporter = Depends(get_audit_reporter),
    ) -> AuthorizationContext:
        code = request.path_params.get(param) or request.query_params.get(param)
        decision = check_warehouse(ctx, code.upper()) if code else check_access(ctx)
        enforce(request, ctx, decision, reporter)
        return ctx

    return _check


require_context = require_guard(check_access)
require_admin = require_guard(admin_only)
require_manager = require_guard(manager_tier)
require_supervisor = require_guard(supervisor_tier)
