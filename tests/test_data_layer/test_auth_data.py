"""
Tests for principal loading at the HTTP boundary (ORM).

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

import pytest
from fastapi import HTTPException

from crm_scope.models.org import Department, Employee, Role, User
from crm_scope.security.auth import load_principal
from crm_scope.security.registry import PermissionRegistry
from crm_scope.security.scopes import Grant, Scope


def test_load_principal_returns_grants_and_employee(db_session):
    # Arrange: create department, role with one grant, user and employee (like init_db does)
    dept = Department(name="Sales", code="SALES", description="Sales Dept")
    db_session.add(dept)
    db_session.flush()

    role = Role(name="Sales BDE", code="SALES_BDE", department_id=dept.id)
    db_session.add(role)
    db_session.flush()
    registry = PermissionRegistry(db_session)
    registry.grant(role.id, registry.ensure_permission("leads", "view", "own").id)

    user = User(email="test@example.com", role_id=role.id, department_id=dept.id, is_active=True)
    db_session.add(user)
    db_session.flush()
    employee = Employee(
        emp_code="E-1",
        first_name="Test",
        last_name="User",
        email="test@example.com",
        department_id=dept.id,
        role_id=role.id,
        user_id=user.id,
    )
    db_session.add(employee)
    db_session.commit()

    # Act
    principal = load_principal(db_session, user.id)

    # Assert
    assert principal.user_id == user.id
    assert principal.employee_id == employee.id
    assert principal.department_id == dept.id
    assert principal.grants == (Grant("leads", "view", Scope.OWN),)


def test_load_principal_raises_when_not_found(db_session):
    with pytest.raises(HTTPException) as exc_info:
        load_principal(db_session, 99999)
    assert exc_info.value.status_code == 401


def test_load_principal_raises_when_inactive(db_session):
    dept = Department(name="Sales", code="SALES", description="Sales")
    db_session.add(dept)
    db_session.flush()
    user = User(
        email="inactive@example.com",
        department_id=dept.id,
        is_active=False,
    )
    db_session.add(user)
    db_session.commit()

    with pytest.raises(HTTPException) as exc_info:
        load_principal(db_session, user.id)
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid or inactive user"


def test_user_department_is_used_without_employee_record(db_session):
    dept = Department(name="Ops", code="OPS")
    db_session.add(dept)
    db_session.flush()
    user = User(email="svc@example.com", department_id=dept.id, is_active=True)
    db_session.add(user)
    db_session.commit()

    principal = load_principal(db_session, user.id)

    assert principal.employee_id is None
    assert principal.department_id == dept.id
