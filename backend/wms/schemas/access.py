"""Pydantic schemas for the caller-facing access endpoints."""

from pydantic import BaseModel

from wms.rbac.guards import Requirement
from wms.rbac.matrix import Capability, Role, WarehouseCode


class RoleInfo(BaseModel):
    name: str
    display_name: str
    description: str | None = None


class NavigationEntry(BaseModel):
    id: str
    label: str
    href: str
    children: list["NavigationEntry"] = []


class AccessContextResponse(BaseModel):
    user_id: str
    roles: list[RoleInfo]
    # capability → legacy JSON value (true / false / "own" / "all")
    permissions: dict[str, bool | str]
    warehouses: list[str]
    has_global_access: bool
    source: str
    default_path: str
    navigation: list[NavigationEntry]


# ── Access check ──────────────────────────────────────────────

class AccessCheckRequest(BaseModel):
    capability: Capability | None = None
    level: Requirement = Requirement.BASIC
    roles: list[Role] = []
    match_all: bool = False
    warehouse: WarehouseCode | None = None


class AccessCheckResponse(BaseModel):
    allowed: bool
    code: str | None = None
    status: int | None = None
    message: str | None = None


class WarehouseAccessResponse(BaseModel):
    warehouse: str
    display_name: str
    allowed: bool = True


# ── Matrix ────────────────────────────────────────────────────

class MatrixRole(BaseModel):
    name: str
    display_name: str
    description: str
    global_warehouse_access: bool
    # capability → access level name ("denied", "granted", "own", "all")
    permissions: dict[str, str]


class MatrixResponse(BaseModel):
    capabilities: list[str]
    access_levels: list[str]
    warehouses: list[str]
    roles: list[MatrixRole]
