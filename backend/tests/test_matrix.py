"""Tests for the static permission matrix and access levels."""

import pytest

from wms.rbac.matrix import (
    GLOBAL_WAREHOUSE_ACCESS_ROLES,
    PERMISSION_MATRIX,
    AccessLevel,
    Capability,
    MatrixConfigurationError,
    Role,
    has_global_warehouse_access,
    role_permissions_json,
    to_capability,
    to_roles,
    validate_matrix,
)


@pytest.mark.unit
class TestAccessLevel:
    def test_rank_order(self):
        ranks = [lvl.rank for lvl in (AccessLevel.DENIED, AccessLevel.GRANTED, AccessLevel.OWN, AccessLevel.ALL)]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (True, AccessLevel.GRANTED),
            (False, AccessLevel.DENIED),
            (None, AccessLevel.DENIED),
            ("own", AccessLevel.OWN),
            ("all", AccessLevel.ALL),
            ("ALL", AccessLevel.ALL),
            ("everything", AccessLevel.DENIED),
            (1, AccessLevel.DENIED),
        ],
    )
    def test_parse_legacy_values(self, raw, expected):
        assert AccessLevel.parse(raw) is expected

    def test_to_json_uses_legacy_encoding(self):
        assert AccessLevel.GRANTED.to_json() is True
        assert AccessLevel.DENIED.to_json() is False
        assert AccessLevel.OWN.to_json() == "own"
        assert AccessLevel.ALL.to_json() == "all"

    def test_only_denied_is_not_granted(self):
        assert not AccessLevel.DENIED.is_granted
        assert all(lvl.is_granted for lvl in AccessLevel if lvl is not AccessLevel.DENIED)


@pytest.mark.unit
class TestPermissionMatrix:
    def test_every_role_defines_every_capability(self):
        for role in Role:
            assert set(PERMISSION_MATRIX[role]) == set(Capability)

    def test_builtin_matrix_validates(self):
        validate_matrix(PERMISSION_MATRIX)

    def test_missing_role_rejected(self):
        matrix = {r: row for r, row in PERMISSION_MATRIX.items() if r is not Role.GM}
        with pytest.raises(MatrixConfigurationError, match="gm"):
            validate_matrix(matrix)

    def test_missing_capability_rejected(self):
        matrix = {r: dict(row) for r, row in PERMISSION_MATRIX.items()}
        del matrix[Role.STAFF][Capability.VIEW_STOCK]
        with pytest.raises(MatrixConfigurationError, match="view_stock"):
            validate_matrix(matrix)

    def test_non_level_value_rejected(self):
        matrix = {r: dict(row) for r, row in PERMISSION_MATRIX.items()}
        matrix[Role.STAFF][Capability.VIEW_STOCK] = "own"
        with pytest.raises(MatrixConfigurationError):
            validate_matrix(matrix)

    def test_staff_row(self):
        row = PERMISSION_MATRIX[Role.STAFF]
        assert row[Capability.VIEW_TRANSACTIONS] is AccessLevel.OWN
        assert row[Capability.CREATE_TRANSACTIONS] is AccessLevel.GRANTED
        assert row[Capability.EDIT_TRANSACTIONS] is AccessLevel.DENIED

    def test_only_admin_has_system_settings(self):
        holders = {r for r in Role if PERMISSION_MATRIX[r][Capability.SYSTEM_SETTINGS].is_granted}
        assert holders == {Role.ADMIN}

    def test_role_permissions_json(self):
        data = role_permissions_json(Role.STAFF)
        assert data["view_stock"] == "own"
        assert data["manage_users"] is False
        assert data["view_dashboard"] is True
        assert set(data) == {c.value for c in Capability}


@pytest.mark.unit
class TestRequirementCoercion:
    def test_to_capability(self):
        assert to_capability("view_stock") is Capability.VIEW_STOCK
        assert to_capability(Capability.MANAGE_ROS) is Capability.MANAGE_ROS

    def test_unknown_capability_fails_fast(self):
        with pytest.raises(MatrixConfigurationError, match="view_stok"):
            to_capability("view_stok")

    def test_to_roles(self):
        assert to_roles(["staff", Role.GM]) == frozenset({Role.STAFF, Role.GM})

    def test_unknown_role_fails_fast(self):
        with pytest.raises(MatrixConfigurationError):
            to_roles(["superuser"])

    def test_global_warehouse_roles(self):
        assert GLOBAL_WAREHOUSE_ACCESS_ROLES == {Role.ADMIN, Role.GM, Role.OPS_MANAGER}
        assert has_global_warehouse_access(Role.GM)
        assert not has_global_warehouse_access(Role.SUPERVISOR)
