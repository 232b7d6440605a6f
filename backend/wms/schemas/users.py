"""Pydantic schemas for user role and warehouse administration."""

from datetime import datetime

from pydantic import BaseModel, Field

from wms.rbac.matrix import Role, WarehouseCode


class UserSummary(BaseModel):
    id: str
    full_name: str | None = None
    phone: str | None = None
    is_active: bool
    roles: list[str]
    warehouses: list[str]
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class RoleAssignmentUpdate(BaseModel):
    roles: list[Role] = Field(default_factory=list)


class WarehouseAssignmentUpdate(BaseModel):
    warehouse_codes: list[WarehouseCode] = Field(default_factory=list)
