"""Install permission functions and row-level policies.

Generated from wms.rbac.policies, which reads the same matrix as the API
guards.  Re-run (downgrade + upgrade) after changing the matrix.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19
"""

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

from alembic import op

from wms.rbac.policies import auth_policy_statements, drop_statements


def upgrade() -> None:
    for statement in auth_policy_statements():
        op.execute(statement)


def downgrade() -> None:
    for statement in drop_statements():
        op.execute(statement)
