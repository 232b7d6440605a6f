"""AccessDenial: audit trail of authorization denials at the API boundary.

Written fire-and-forget by `wms.rbac.audit`; losing an occasional row is
acceptable.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wms.database import Base


class AccessDenial(Base):
    __tablename__ = "wms_access_denials"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # ── Who ────────────────────────────────────────────────────
    # null when the request carried no identity
    user_id: Mapped[str | None] = mapped_column(String(36), index=True)

    # ── What ───────────────────────────────────────────────────
    resource: Mapped[str] = mapped_column(String(500), nullable=False)
    reason_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Context ────────────────────────────────────────────────
    client_metadata: Mapped[dict | None] = mapped_column(JSON)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
