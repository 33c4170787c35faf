"""
Tests for the permission registry: catalogue, grants and the one scope per
role x module x action rule.
"""
from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from crm_scope.models.org import Role, RolePermission
from crm_scope.security.errors import AmbiguousGrantError, UnknownPermissionError
from crm_scope.security.registry import PermissionRegistry
from crm_scope.security.scopes import Grant, Scope


@pytest.fixture
def role(db_session):
    role = Role(name="Sales BDE", code="SALES_BDE")
    db_session.add(role)
    db_session.flush()
    return role


def test_ensure_permission_is_get_or_create(db_session):
    registry = PermissionRegistry(db_session)

    first = registry.ensure_permission("leads", "view", "own")
    second = registry.ensure_permission("leads", "view", Scope.OWN)

    assert first.id == second.id
    assert len(registry.list_permissions()) == 1


def test_ensure_permission_rejects_unknown_values(db_session):
    registry = PermissionRegistry(db_session)

    with pytest.raises(ValueError):
        registry.ensure_permission("leads", "view", "galaxy")
    with pytest.raises(ValueError):
        registry.ensure_permission("leads", "teleport", "own")


def test_grant_and_read_back(db_session, role):
    registry = PermissionRegistry(db_session)
    perm = registry.ensure_permission("leads", "view", "own")

    registry.grant(role.id, perm.id)

    assert registry.role_grants(role.id) == [Grant("leads", "view", Scope.OWN)]
    assert registry.permission_matrix() == {"SALES_BDE": [Grant("leads", "view", Scope.OWN)]}


def test_grant_is_idempotent(db_session, role):
    registry = PermissionRegistry(db_session)
    perm = registry.ensure_permission("leads", "view", "own")

    registry.grant(role.id, perm.id)
    registry.grant(role.id, perm.id)

    assert len(registry.role_permissions(role.id)) == 1


def test_second_scope_for_same_action_is_rejected(db_session, role):
    registry = PermissionRegistry(db_session)
    own = registry.ensure_permission("leaves", "view", "own")
    team = registry.ensure_permission("leaves", "view", "team")
    registry.grant(role.id, own.id)

    with pytest.raises(AmbiguousGrantError) as exc_info:
        registry.grant(role.id, team.id)

    assert exc_info.value.scopes == ["own", "team"]
    assert registry.role_grants(role.id) == [Grant("leaves", "view", Scope.OWN)]


def test_database_constraint_backs_the_rule(db_session, role):
    registry = PermissionRegistry(db_session)
    own = registry.ensure_permission("leads", "view", "own")
    team = registry.ensure_permission("leads", "view", "team")
    registry.grant(role.id, own.id)

    db_session.add(RolePermission(role_id=role.id, permission_id=team.id, module="leads", action="view"))
    with pytest.raises(IntegrityError):
        db_session.flush()


def test_revoke(db_session, role):
    registry = PermissionRegistry(db_session)
    perm = registry.ensure_permission("leads", "view", "own")
    registry.grant(role.id, perm.id)

    assert registry.revoke(role.id, perm.id) is True
    assert registry.revoke(role.id, perm.id) is False
    assert registry.role_grants(role.id) == []


def test_sync_replaces_the_permission_set(db_session, role):
    registry = PermissionRegistry(db_session)
    view_own = registry.ensure_permission("leads", "view", "own")
    edit_own = registry.ensure_permission("leads", "edit", "own")
    view_team = registry.ensure_permission("leads", "view", "team")
    registry.grant(role.id, view_own.id)

    registry.sync_role_permissions(role.id, [view_team.id, edit_own.id])

    assert set(registry.role_grants(role.id)) == {
        Grant("leads", "view", Scope.TEAM),
        Grant("leads", "edit", Scope.OWN),
    }


def test_sync_rejects_ambiguous_set_without_writing(db_session, role):
    registry = PermissionRegistry(db_session)
    view_own = registry.ensure_permission("leads", "view", "own")
    view_all = registry.ensure_permission("leads", "view", "all")
    registry.grant(role.id, view_own.id)

    with pytest.raises(AmbiguousGrantError):
        registry.sync_role_permissions(role.id, [view_own.id, view_all.id])

    assert registry.role_grants(role.id) == [Grant("leads", "view", Scope.OWN)]


def test_sync_rejects_unknown_permission(db_session, role):
    registry = PermissionRegistry(db_session)

    with pytest.raises(UnknownPermissionError):
        registry.sync_role_permissions(role.id, [12345])


def test_unknown_role(db_session):
    registry = PermissionRegistry(db_session)

    with pytest.raises(UnknownPermissionError):
        registry.role_permissions(999)


def test_seeded_roles_hold_one_scope_per_action(db_session, seeded):
    registry = PermissionRegistry(db_session)

    for code, grants in registry.permission_matrix().items():
        keys = [(g.module, g.action) for g in grants]
        assert len(keys) == len(set(keys)), code
