"""Audit reporter for authorization denials at the API boundary.

Usage:
    reporter.record_denial(DenialEvent.from_request(request, user_id, decision))

`record_denial` is fire-and-forget:
  - a structured warning goes to the `wms.audit` logger immediately
  - when persistence is enabled, an asyncio task inserts a
    `wms_access_denials` row in its own session

Nothing here raises into the caller and nothing is retried; a lost audit
row is acceptable, a blocked or altered decision is not.  UI-only denials
(render suppression) are never reported.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wms.config import settings
from wms.database import async_session
from wms.models.access_denial import AccessDenial

logger = logging.getLogger("wms.audit")


@dataclass(frozen=True)
class DenialEvent:
    user_id: str | None
    resource: str
    reason_code: str
    reason: str
    client_metadata: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_request(
        cls,
        request: Request,
        user_id: str | None,
        reason_code: str,
        reason: str,
    ) -> "DenialEvent":
        metadata = {
            "method": request.method,
            "user_agent": request.headers.get("user-agent") or "unknown",
            "ip": request.client.host if request.client else "unknown",
        }
        return cls(
            user_id=user_id,
            resource=str(request.url.path),
            reason_code=reason_code,
            reason=reason,
            client_metadata=metadata,
        )

    def to_log_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "resource": self.resource,
            "reason_code": self.reason_code,
            "reason": self.reason,
            **self.client_metadata,
        }


class AuditReporter:
    """Record denial events without ever affecting the decision."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        persist: bool | None = None,
    ):
        self._session_factory = session_factory or async_session
        self._persist = settings.audit_persist if persist is None else persist
        self._pending: set[asyncio.Task] = set()

    def record_denial(self, event: DenialEvent) -> None:
        try:
            logger.warning(
                "[PERMISSION_DENIED] %s",
                json.dumps(event.to_log_dict(), default=str),
                extra={"user_id": event.user_id, "reason_code": event.reason_code},
            )
            if self._persist:
                task = asyncio.get_running_loop().create_task(self._persist_event(event))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
        except Exception:
            logger.exception("Failed to record access denial")

    async def _persist_event(self, event: DenialEvent) -> None:
        try:
            async with self._session_factory() as db:
                db.add(
                    AccessDenial(
                        user_id=event.user_id,
                        resource=event.resource[:500],
                        reason_code=event.reason_code,
                        reason=event.reason,
                        client_metadata=event.client_metadata,
                        occurred_at=event.timestamp.replace(tzinfo=None),
                    )
                )
                await db.commit()
        except Exception as e:
            logger.error(f"Failed to persist access denial: {e}")

    async def drain(self) -> None:
        """Wait for in-flight writes (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


_reporter: AuditReporter | None = None


def get_audit_reporter() -> AuditReporter:
    """FastAPI dependency returning the process-wide reporter."""
    global _reporter
    if _reporter is None:
        _reporter = AuditReporter()
    return _reporter
