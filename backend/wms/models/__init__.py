"""Aggregate model imports for Alembic auto-detection."""

from wms.models.role import WmsRole  # noqa: F401
from wms.models.user import WmsUser  # noqa: F401
from wms.models.assignment import WmsUserRole, WmsUserWarehouse  # noqa: F401
from wms.models.snapshot import PermissionSnapshot  # noqa: F401
from wms.models.access_denial import AccessDenial  # noqa: F401
