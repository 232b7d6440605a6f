"""Seeded role definitions.

One row per `wms.rbac.matrix.Role`.  `permissions` holds the matrix row in
the legacy JSON encoding ({"view_stock": "own", "manage_users": false, ...});
migration 0001 seeds it from PERMISSION_MATRIX so the table and the Python
matrix cannot drift.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wms.database import Base


class WmsRole(Base):
    __tablename__ = "wms_roles"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    permissions: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    description: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    assignments = relationship(
        "WmsUserRole", back_populates="role", cascade="all, delete-orphan"
    )
