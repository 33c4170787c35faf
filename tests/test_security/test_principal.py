"""
Tests for principal resolution (fresh from the database on every call).
"""
from __future__ import annotations

import pytest
from sqlalchemy import select

from crm_scope.models.org import Permission, Role, User
from crm_scope.security.errors import NoPrincipalError
from crm_scope.security.principal import resolve_principal
from crm_scope.security.registry import PermissionRegistry
from crm_scope.security.scopes import Grant, Scope


def test_principal_carries_employee_department_and_grants(db_session, seeded):
    bde = seeded["E-1004"]

    principal = resolve_principal(db_session, bde.user_id)

    assert principal.employee_id == bde.id
    assert principal.department_id == bde.department_id
    assert principal.role_code == "SALES_BDE"
    assert principal.is_admin is False
    assert Grant("leads", "view", Scope.OWN) in principal.grants


def test_admin_role_is_bypass(db_session, seeded):
    principal = resolve_principal(db_session, seeded["E-0001"].user_id)

    assert principal.is_admin is True
    assert principal.grants == ()


def test_revocation_is_visible_on_next_resolution(db_session, seeded):
    # Arrange
    user_id = seeded["E-1004"].user_id
    registry = PermissionRegistry(db_session)
    role = db_session.scalars(select(Role).where(Role.code == "SALES_BDE")).one()
    perm = db_session.scalars(
        select(Permission).where(Permission.module == "leads", Permission.action == "view", Permission.scope_type == "own")
    ).one()
    assert Grant("leads", "view", Scope.OWN) in resolve_principal(db_session, user_id).grants

    # Act
    registry.revoke(role.id, perm.id)
    db_session.commit()

    # Assert
    assert Grant("leads", "view", Scope.OWN) not in resolve_principal(db_session, user_id).grants


def test_role_change_is_visible_on_next_resolution(db_session, seeded):
    user = db_session.get(User, seeded["E-1004"].user_id)
    bm_role = db_session.scalars(select(Role).where(Role.code == "SALES_BM")).one()

    user.role_id = bm_role.id
    db_session.commit()

    principal = resolve_principal(db_session, user.id)
    assert principal.role_code == "SALES_BM"
    assert Grant("leads", "view", Scope.TEAM) in principal.grants


def test_user_without_role_has_no_grants(db_session):
    user = User(email="nobody@example.com", is_active=True)
    db_session.add(user)
    db_session.commit()

    principal = resolve_principal(db_session, user.id)

    assert principal.role_code is None
    assert principal.grants == ()
    assert principal.employee_id is None


def test_unknown_user_raises(db_session):
    with pytest.raises(NoPrincipalError) as exc_info:
        resolve_principal(db_session, 99999)
    assert exc_info.value.status_code == 401


def test_inactive_user_raises(db_session):
    user = User(email="gone@example.com", is_active=False)
    db_session.add(user)
    db_session.commit()

    with pytest.raises(NoPrincipalError):
        resolve_principal(db_session, user.id)
