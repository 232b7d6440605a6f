"""Permission merge engine.

Combines the matrix rows of every role a user holds into one effective
capability map.  For each capability the highest-ranked level wins
(all > own > granted > denied); equal ranks never overwrite.  A capability
missing from a role's row contributes DENIED, so omission can never grant
access.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from wms.rbac.matrix import (
    PERMISSION_MATRIX,
    AccessLevel,
    Capability,
    Role,
)

EffectivePermissions = dict[Capability, AccessLevel]


def merge_levels(current: AccessLevel, candidate: AccessLevel) -> AccessLevel:
    """Return the higher-ranked of two levels, keeping `current` on ties."""
    return candidate if candidate.rank > current.rank else current


def denied_permissions() -> EffectivePermissions:
    return {cap: AccessLevel.DENIED for cap in Capability}


def merge_permissions(
    roles: Iterable[Role],
    matrix: Mapping[Role, Mapping[Capability, AccessLevel]] = PERMISSION_MATRIX,
) -> EffectivePermissions:
    """Compute effective permissions for a set of roles.

    Order-independent and idempotent: merging the same roles twice yields
    the same map.  Zero roles → every capability DENIED.
    """
    effective = denied_permissions()
    for role in set(roles):
        row = matrix.get(role, {})
        for cap in Capability:
            effective[cap] = merge_levels(
                effective[cap], row.get(cap, AccessLevel.DENIED)
            )
    return effective


def permissions_from_snapshot(snapshot: Mapping[str, object]) -> EffectivePermissions:
    """Decode a stored effective-permission snapshot.

    Unknown keys are ignored; capabilities absent from the snapshot are
    DENIED.
    """
    effective = denied_permissions()
    for key, raw in snapshot.items():
        try:
            cap = Capability(key)
        except ValueError:
            continue
        effective[cap] = AccessLevel.parse(raw)
    return effective


def permissions_to_json(permissions: Mapping[Capability, AccessLevel]) -> dict[str, bool | str]:
    return {cap.value: level.to_json() for cap, level in permissions.items()}


def granted_capabilities(roles: Iterable[Role]) -> list[Capability]:
    """Capabilities whose merged level is anything but DENIED."""
    effective = merge_permissions(roles)
    return [cap for cap, level in effective.items() if level.is_granted]


def snapshot_for_role_names(names: Iterable[str]) -> dict[str, bool | str]:
    """Stored snapshot for a set of role names; unknown names grant nothing."""
    known = {r.value: r for r in Role}
    return permissions_to_json(merge_permissions(known[n] for n in names if n in known))
