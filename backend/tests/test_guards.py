"""Tests for the guard evaluators."""

import pytest

from tests.fakes import make_context
from wms.middleware.exceptions import (
    DatastoreUnavailable,
    PermissionDenied,
    RoleDenied,
    WarehouseAccessDenied,
)
from wms.rbac.context import AuthorizationContext
from wms.rbac.guards import (
    ReasonCode,
    Requirement,
    admin_only,
    check_access,
    check_capability,
    check_roles,
    check_warehouse,
    manager_tier,
    satisfies,
    supervisor_tier,
)
from wms.rbac.matrix import AccessLevel, Capability, MatrixConfigurationError, Role, WarehouseCode


@pytest.mark.unit
class TestSatisfies:
    def test_basic_requirement(self):
        assert satisfies(AccessLevel.GRANTED)
        assert satisfies(AccessLevel.OWN)
        assert satisfies(AccessLevel.ALL)
        assert not satisfies(AccessLevel.DENIED)

    def test_all_requirement(self):
        assert satisfies(AccessLevel.ALL, Requirement.ALL)
        assert not satisfies(AccessLevel.OWN, Requirement.ALL)
        assert not satisfies(AccessLevel.GRANTED, Requirement.ALL)


@pytest.mark.auth
class TestCapabilityGuard:
    def test_staff_views_own_transactions(self):
        ctx = make_context(Role.STAFF)
        assert check_capability(ctx, Capability.VIEW_TRANSACTIONS)

    def test_staff_cannot_view_all_transactions(self):
        ctx = make_context(Role.STAFF)
        decision = check_capability(ctx, Capability.VIEW_TRANSACTIONS, Requirement.ALL)

        assert not decision
        assert decision.reason is ReasonCode.PERMISSION_DENIED
        assert decision.status_code == 403
        exc = decision.to_exception()
        assert isinstance(exc, PermissionDenied)
        assert exc.capability == "view_transactions"

    def test_supervisor_edits(self):
        assert check_capability(make_context(Role.SUPERVISOR), Capability.EDIT_TRANSACTIONS)

    def test_staff_cannot_edit(self):
        assert not check_capability(make_context(Role.STAFF), Capability.EDIT_TRANSACTIONS)

    def test_multi_role_merge_allows_edit(self):
        ctx = make_context(Role.STAFF, Role.SUPERVISOR)
        assert check_capability(ctx, "edit_transactions")

    def test_unknown_capability_is_a_configuration_error(self):
        with pytest.raises(MatrixConfigurationError):
            check_capability(make_context(Role.ADMIN), "edit_everything")

    def test_raise_for_denial(self):
        decision = check_capability(make_context(Role.STAFF), Capability.MANAGE_USERS)
        with pytest.raises(PermissionDenied):
            decision.raise_for_denial()
        # allowed decisions never raise
        check_capability(make_context(Role.ADMIN), Capability.MANAGE_USERS).raise_for_denial()


@pytest.mark.auth
class TestRoleGuard:
    def test_any_of(self):
        ctx = make_context(Role.SUPERVISOR)
        assert check_roles(ctx, [Role.ADMIN, Role.SUPERVISOR])
        assert not check_roles(ctx, [Role.ADMIN, Role.GM])

    def test_all_of(self):
        ctx = make_context(Role.STAFF, Role.SUPERVISOR)
        assert check_roles(ctx, [Role.STAFF, Role.SUPERVISOR], match_all=True)
        decision = check_roles(ctx, [Role.STAFF, Role.ADMIN], match_all=True)

        assert not decision
        assert decision.message == "Requires all of: admin, staff"
        exc = decision.to_exception()
        assert isinstance(exc, RoleDenied)
        assert exc.roles == ["admin", "staff"]

    def test_empty_requirement_allows(self):
        assert check_roles(make_context(Role.STAFF), [])

    def test_presets(self):
        assert admin_only(make_context(Role.ADMIN))
        assert not admin_only(make_context(Role.GM))
        assert manager_tier(make_context(Role.OPS_MANAGER))
        assert not manager_tier(make_context(Role.SUPERVISOR))
        assert supervisor_tier(make_context(Role.SUPERVISOR))
        assert not supervisor_tier(make_context(Role.STAFF))


@pytest.mark.auth
class TestWarehouseGuard:
    def test_admin_without_assignments_reaches_ubb(self):
        assert check_warehouse(make_context(Role.ADMIN), WarehouseCode.UBB)

    def test_staff_limited_to_assignments(self):
        ctx = make_context(Role.STAFF, warehouses=[WarehouseCode.DDD])
        assert check_warehouse(ctx, "DDD")
        decision = check_warehouse(ctx, "UBB")

        assert not decision
        assert decision.reason is ReasonCode.WAREHOUSE_ACCESS_DENIED
        assert isinstance(decision.to_exception(), WarehouseAccessDenied)

    def test_unknown_code_denied(self):
        assert not check_warehouse(make_context(Role.ADMIN), "NOPE")


@pytest.mark.auth
class TestCompositeGuard:
    def test_roles_checked_before_capability(self):
        ctx = make_context(Role.STAFF)
        decision = check_access(ctx, capability=Capability.MANAGE_USERS, roles=[Role.ADMIN])
        assert decision.reason is ReasonCode.ROLE_DENIED

    def test_capability_checked_before_warehouse(self):
        ctx = make_context(Role.STAFF)
        decision = check_access(ctx, capability=Capability.VIEW_REPORTS, warehouse="DDD")
        assert decision.reason is ReasonCode.PERMISSION_DENIED

    def test_all_requirements_met(self):
        ctx = make_context(Role.SUPERVISOR, warehouses=[WarehouseCode.MBB])
        assert check_access(
            ctx,
            capability=Capability.EDIT_TRANSACTIONS,
            roles=[Role.SUPERVISOR],
            warehouse=WarehouseCode.MBB,
        )

    def test_no_requirements_allows(self):
        assert check_access(make_context(Role.STAFF))

    def test_denial_safe_context(self):
        ctx = AuthorizationContext.denial_safe("u-1")
        decision = check_access(ctx, capability=Capability.VIEW_DASHBOARD)

        assert decision.reason is ReasonCode.DATASTORE_UNAVAILABLE
        assert decision.status_code == 503
        assert isinstance(decision.to_exception(), DatastoreUnavailable)

    def test_decision_dict(self):
        assert check_access(make_context(Role.ADMIN)).to_dict() == {"allowed": True}
        data = check_capability(make_context(Role.STAFF), Capability.SYSTEM_SETTINGS).to_dict()
        assert data == {
            "allowed": False,
            "code": "PERMISSION_DENIED",
            "status": 403,
            "message": "Missing required permission: system_settings",
        }
