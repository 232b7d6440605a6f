"""Create the authorization tables and seed wms_roles from the matrix.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

import uuid

from alembic import op
import sqlalchemy as sa

from wms.rbac.matrix import ROLE_DESCRIPTIONS, Role, WarehouseCode, role_permissions_json


def upgrade() -> None:
    op.create_table(
        "wms_users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("full_name", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_wms_users_is_active", "wms_users", ["is_active"])

    roles = op.create_table(
        "wms_roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_wms_roles_name", "wms_roles", ["name"])

    op.create_table(
        "wms_user_roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("wms_users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "role_id", sa.String(36),
            sa.ForeignKey("wms_roles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("assigned_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("assigned_by", sa.String(36), sa.ForeignKey("wms_users.id")),
        sa.UniqueConstraint("user_id", "role_id", name="uq_wms_user_roles"),
    )
    op.create_index("ix_wms_user_roles_user_id", "wms_user_roles", ["user_id"])
    op.create_index("ix_wms_user_roles_role_id", "wms_user_roles", ["role_id"])

    codes = ", ".join(f"'{w.value}'" for w in WarehouseCode)
    op.create_table(
        "wms_user_warehouses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("wms_users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("warehouse_code", sa.String(10), nullable=False),
        sa.Column("assigned_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("assigned_by", sa.String(36), sa.ForeignKey("wms_users.id")),
        sa.UniqueConstraint("user_id", "warehouse_code", name="uq_wms_user_warehouses"),
        sa.CheckConstraint(f"warehouse_code IN ({codes})", name="ck_wms_user_warehouses_code"),
    )
    op.create_index("ix_wms_user_warehouses_user_id", "wms_user_warehouses", ["user_id"])
    op.create_index(
        "ix_wms_user_warehouses_warehouse_code", "wms_user_warehouses", ["warehouse_code"]
    )

    op.create_table(
        "wms_permission_snapshots",
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("wms_users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("computed_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "wms_access_denials",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36)),
        sa.Column("resource", sa.String(500), nullable=False),
        sa.Column("reason_code", sa.String(50), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("client_metadata", sa.JSON()),
        sa.Column("occurred_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_wms_access_denials_user_id", "wms_access_denials", ["user_id"])
    op.create_index("ix_wms_access_denials_reason_code", "wms_access_denials", ["reason_code"])
    op.create_index("ix_wms_access_denials_occurred_at", "wms_access_denials", ["occurred_at"])

    # ── Seed roles from PERMISSION_MATRIX ────────────────────
    op.bulk_insert(
        roles,
        [
            {
                "id": str(uuid.uuid4()),
                "name": role.value,
                "display_name": role.display_name,
                "permissions": role_permissions_json(role),
                "description": ROLE_DESCRIPTIONS[role],
            }
            for role in Role
        ],
    )


def downgrade() -> None:
    op.drop_table("wms_access_denials")
    op.drop_table("wms_permission_snapshots")
    op.drop_table("wms_user_warehouses")
    op.drop_table("wms_user_roles")
    op.drop_table("wms_roles")
    op.drop_table("wms_users")
