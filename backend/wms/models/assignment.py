"""User ↔ role and user ↔ warehouse junction tables.

Both cascade on user deletion; role assignments also cascade on role
deletion.  `assigned_by` records the administrator who made the change.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wms.database import Base
from wms.rbac.matrix import WarehouseCode

_WAREHOUSE_CHECK = "warehouse_code IN ({})".format(
    ", ".join(f"'{w.value}'" for w in WarehouseCode)
)


class WmsUserRole(Base):
    __tablename__ = "wms_user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_wms_user_roles"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wms_users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wms_roles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    assigned_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("wms_users.id")
    )

    user = relationship("WmsUser", back_populates="role_assignments", foreign_keys=[user_id])
    role = relationship("WmsRole", back_populates="assignments")


class WmsUserWarehouse(Base):
    __tablename__ = "wms_user_warehouses"
    __table_args__ = (
        UniqueConstraint("user_id", "warehouse_code", name="uq_wms_user_warehouses"),
        CheckConstraint(_WAREHOUSE_CHECK, name="ck_wms_user_warehouses_code"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wms_users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    warehouse_code: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    assigned_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("wms_users.id")
    )

    user = relationship(
        "WmsUser", back_populates="warehouse_assignments", foreign_keys=[user_id]
    )
