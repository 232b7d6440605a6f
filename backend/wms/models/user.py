import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wms.database import Base


class WmsUser(Base):
    """WMS profile for an identity issued by the auth provider."""

    __tablename__ = "wms_users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    full_name: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    role_assignments = relationship(
        "WmsUserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="WmsUserRole.user_id",
    )
    warehouse_assignments = relationship(
        "WmsUserWarehouse",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="WmsUserWarehouse.user_id",
    )
