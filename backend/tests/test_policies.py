"""Tests for the generated database functions and row-level policies."""

import pytest

from wms.rbac.matrix import Capability
from wms.rbac.policies import (
    FUNCTION_NAMES,
    TRIGGER_FUNCTION_NAMES,
    auth_policy_statements,
    drop_snapshot_trigger_statements,
    drop_statements,
    function_statements,
    render_sql,
    snapshot_trigger_statements,
    warehouse_row_policy,
)


def _function(name: str) -> str:
    (sql,) = [s for s in function_statements() if f"FUNCTION {name}(" in s]
    return sql


@pytest.mark.unit
class TestGeneratedFunctions:
    def test_one_statement_per_function(self):
        assert len(function_statements()) == len(FUNCTION_NAMES)

    def test_rank_function_mirrors_access_levels(self):
        sql = _function("wms_access_rank")
        assert "WHEN p_value = 'true'::jsonb THEN 1" in sql
        assert "WHEN p_value = '\"own\"'::jsonb THEN 2" in sql
        assert "WHEN p_value = '\"all\"'::jsonb THEN 3" in sql
        assert "ELSE 0" in sql

    def test_permissions_merge_by_rank(self):
        sql = _function("wms_get_user_permissions")
        assert "DISTINCT ON (kv.key)" in sql
        assert "ORDER BY kv.key, wms_access_rank(kv.value) DESC" in sql

    def test_has_permission_thresholds(self):
        sql = _function("wms_has_permission")
        assert "CASE WHEN p_require_all THEN 3 ELSE 1 END" in sql

    def test_global_roles_come_from_matrix(self):
        for name in ("wms_has_warehouse_access", "wms_get_user_warehouses"):
            sql = _function(name)
            assert "wr.name IN ('admin', 'gm', 'ops_manager')" in sql
            assert "'supervisor'" not in sql

    def test_global_warehouse_array_lists_every_code(self):
        sql = _function("wms_get_user_warehouses")
        assert "ARRAY['DDD', 'LJBB', 'MBB', 'UBB']" in sql


@pytest.mark.unit
class TestGeneratedPolicies:
    def test_auth_tables_have_rls_enabled(self):
        statements = auth_policy_statements()
        for table in ("wms_users", "wms_roles", "wms_user_roles", "wms_user_warehouses"):
            assert f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY" in statements

    def test_management_uses_manage_users_capability(self):
        (policy,) = [
            s for s in auth_policy_statements()
            if s.startswith('CREATE POLICY "User managers can manage role assignments"')
        ]
        assert "wms_has_permission(current_setting('wms.user_id', true), 'manage_users', false)" in policy

    def test_policies_are_replaceable(self):
        statements = auth_policy_statements()
        creates = [s for s in statements if s.startswith("CREATE POLICY")]
        drops = [s for s in statements if s.startswith("DROP POLICY IF EXISTS")]
        assert len(creates) == len(drops) == 8

    def test_warehouse_row_policy_with_owner(self):
        (enable, drop, create) = warehouse_row_policy("ro_process", Capability.MANAGE_ROS, owner_column="created_by")
        assert enable == "ALTER TABLE ro_process ENABLE ROW LEVEL SECURITY"
        assert drop.startswith("DROP POLICY IF EXISTS")
        assert "wms_has_warehouse_access(current_setting('wms.user_id', true), warehouse)" in create
        assert "'manage_ros', true" in create
        assert "created_by = current_setting('wms.user_id', true)" in create

    def test_warehouse_row_policy_without_owner(self):
        create = warehouse_row_policy("stock_levels", Capability.VIEW_STOCK, owner_column=None)[-1]
        assert "'view_stock', false" in create
        assert "'view_stock', true" not in create

    def test_drop_statements_remove_functions(self):
        drops = drop_statements()
        assert drops[-1] == "DROP FUNCTION IF EXISTS wms_access_rank(jsonb) CASCADE"
        assert sum(s.startswith("DROP FUNCTION") for s in drops) == len(FUNCTION_NAMES)

    def test_render_sql(self):
        assert render_sql(["SELECT 1", "SELECT 2"]) == "SELECT 1;\n\nSELECT 2;\n"


@pytest.mark.unit
class TestSnapshotTriggers:
    def test_role_assignment_changes_drop_the_snapshot(self):
        (create,) = [
            s for s in snapshot_trigger_statements()
            if s.startswith("CREATE TRIGGER wms_user_roles_drop_snapshot")
        ]
        assert "AFTER INSERT OR UPDATE OR DELETE ON wms_user_roles" in create
        assert "FOR EACH ROW EXECUTE FUNCTION wms_drop_user_snapshot()" in create

    def test_user_trigger_covers_old_and_new_rows(self):
        sql = snapshot_trigger_statements()[0]
        assert "DELETE FROM wms_permission_snapshots WHERE user_id = OLD.user_id" in sql
        assert "DELETE FROM wms_permission_snapshots WHERE user_id = NEW.user_id" in sql

    def test_role_permission_edits_drop_holder_snapshots(self):
        (create,) = [
            s for s in snapshot_trigger_statements()
            if s.startswith("CREATE TRIGGER wms_roles_drop_snapshots")
        ]
        assert "AFTER UPDATE OF permissions ON wms_roles" in create
        assert "SELECT user_id FROM wms_user_roles WHERE role_id = NEW.id" in snapshot_trigger_statements()[1]

    def test_triggers_are_replaceable(self):
        statements = snapshot_trigger_statements()
        assert sum(s.startswith("DROP TRIGGER IF EXISTS") for s in statements) == 2
        assert sum(s.startswith("CREATE TRIGGER") for s in statements) == 2

    def test_downgrade_drops_trigger_functions(self):
        assert drop_snapshot_trigger_statements() == [
            f"DROP FUNCTION IF EXISTS {name} CASCADE" for name in TRIGGER_FUNCTION_NAMES
        ]
