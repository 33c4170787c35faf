"""
Tests for the scope decision: admin bypass, denials and legacy duplicates.
"""
from __future__ import annotations

import logging

import pytest

from crm_scope.security.authorizer import authorize, denial_message
from crm_scope.security.errors import PermissionDeniedError
from crm_scope.security.scopes import Grant, Principal, Scope


def _principal(*grants: Grant, is_admin: bool = False) -> Principal:
    return Principal(
        user_id=10,
        employee_id=20,
        department_id=2,
        role_code="ADMIN" if is_admin else "SALES_BDE",
        grants=tuple(grants),
        is_admin=is_admin,
    )


def test_single_grant_yields_its_scope():
    principal = _principal(Grant("leads", "view", Scope.OWN))

    decision = authorize(principal, "leads", "view")

    assert decision.scope is Scope.OWN
    assert (decision.module, decision.action) == ("leads", "view")


def test_admin_bypasses_grants():
    principal = _principal(is_admin=True)

    assert authorize(principal, "leads", "delete").scope is Scope.ALL
    assert authorize(principal, "anything", "manage").scope is Scope.ALL


def test_missing_grant_is_denied_with_phrase():
    principal = _principal(Grant("leads", "view", Scope.OWN))

    with pytest.raises(PermissionDeniedError) as exc_info:
        authorize(principal, "leads", "delete")

    assert exc_info.value.message == "You don't have permission to delete items in leads."
    assert exc_info.value.status_code == 403


def test_grant_for_other_module_does_not_leak():
    principal = _principal(Grant("tasks", "view", Scope.ALL))

    with pytest.raises(PermissionDeniedError):
        authorize(principal, "leads", "view")


@pytest.mark.parametrize(
    "action,expected",
    [
        ("view", "You don't have permission to view this content in leads."),
        ("create", "You don't have permission to create new items in leads."),
        ("edit", "You don't have permission to make changes in leads."),
        ("assign", "You don't have permission to assign items in leads."),
        ("approve", "You don't have permission to approve in leads."),
    ],
)
def test_denial_message(action, expected):
    assert denial_message("leads", action) == expected


def test_legacy_duplicate_grants_resolve_to_narrowest(caplog):
    principal = _principal(
        Grant("leaves", "view", Scope.ALL),
        Grant("leaves", "view", Scope.OWN),
        Grant("leaves", "view", Scope.TEAM),
    )

    with caplog.at_level(logging.WARNING, logger="crm_scope"):
        decision = authorize(principal, "leaves", "view")

    assert decision.scope is Scope.OWN
    assert "ambiguous grants" in caplog.text


def test_scope_breadth_order():
    ordered = sorted(Scope, key=lambda s: s.breadth)

    assert ordered == [Scope.OWN, Scope.TEAM, Scope.DEPARTMENT, Scope.ASSIGNED, Scope.ALL]
