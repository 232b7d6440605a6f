"""Per-session cache of built authorization contexts.

Keys:  authz:ctx:{user_id}:{generation}:{session_id}
       authz:gen:{user_id}   per-user generation counter
TTL:   min(settings.context_cache_ttl, seconds left on the session token),
       so an entry never outlives the session that produced it.

Denial-safe contexts are never stored.  `invalidate_user()` must be called
after any role or warehouse assignment change; it bumps the user's
generation and drops the entries for every session of that user.  Callers
read the generation before building a context and store under that same
generation, so a build that raced an invalidation lands under a key no
reader will look up again.
"""

from __future__ import annotations

import logging
import time

from wms.config import settings
from wms.rbac.context import AuthorizationContext
from wms.utils.cache import bump_counter, get_counter, get_json, invalidate_cache, set_json

logger = logging.getLogger(__name__)

KEY_PREFIX = "authz:ctx"
GENERATION_PREFIX = "authz:gen"


def context_key(user_id: str, generation: int, session_id: str) -> str:
    return f"{KEY_PREFIX}:{user_id}:{generation}:{session_id}"


def generation_key(user_id: str) -> str:
    return f"{GENERATION_PREFIX}:{user_id}"


class ContextCache:
    def __init__(self, ttl: int | None = None):
        self.ttl = settings.context_cache_ttl if ttl is None else ttl

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def _ttl_for(self, session_expires_at: float | None) -> int:
        if session_expires_at is None:
            return self.ttl
        remaining = int(session_expires_at - time.time())
        return max(0, min(self.ttl, remaining))

    async def generation(self, user_id: str) -> int | None:
        """Current generation, or None when caching is off or Redis is down."""
        if not self.enabled:
            return None
        return await get_counter(generation_key(user_id))

    async def get(
        self, user_id: str, session_id: str | None, generation: int | None
    ) -> AuthorizationContext | None:
        if not self.enabled or not session_id or generation is None:
            return None
        data = await get_json(context_key(user_id, generation, session_id))
        if not data:
            return None
        try:
            return AuthorizationContext.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Discarding malformed cached context for {user_id}: {e}")
            return None

    async def set(
        self,
        ctx: AuthorizationContext,
        session_id: str | None,
        generation: int | None,
        session_expires_at: float | None = None,
    ) -> None:
        if not self.enabled or not session_id or generation is None or ctx.is_denial_safe:
            return
        await set_json(
            context_key(ctx.user_id, generation, session_id),
            ctx.to_dict(),
            self._ttl_for(session_expires_at),
        )

    async def invalidate_session(self, user_id: str, session_id: str) -> None:
        await invalidate_cache(f"{KEY_PREFIX}:{user_id}:*:{session_id}")

    async def invalidate_user(self, user_id: str) -> int:
        await bump_counter(generation_key(user_id))
        return await invalidate_cache(f"{KEY_PREFIX}:{user_id}:*")


def get_context_cache() -> ContextCache:
    """FastAPI dependency; tests override it to disable caching."""
    return ContextCache()
