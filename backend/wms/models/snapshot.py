"""PermissionSnapshot: server-authoritative effective permissions.

Rewritten in the same transaction as the user's role rows, and deleted by
a trigger on wms_user_roles when roles change any other way.  Read by the
context builder as its fast path; when no row exists the builder merges
the user's roles itself.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from wms.database import Base


class PermissionSnapshot(Base):
    __tablename__ = "wms_permission_snapshots"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wms_users.id", ondelete="CASCADE"), primary_key=True
    )
    permissions: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
