"""Drop stale permission snapshots when role assignments change.

Role rows changed outside the user administration API (manual SQL, a
cascade from a deleted role, an edited role permission set) delete the
affected snapshots, so the context builder falls back to merging the
live roles.

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-19
"""

revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None

from alembic import op

from wms.rbac.policies import drop_snapshot_trigger_statements, snapshot_trigger_statements


def upgrade() -> None:
    for statement in snapshot_trigger_statements():
        op.execute(statement)


def downgrade() -> None:
    for statement in drop_snapshot_trigger_statements():
        op.execute(statement)
