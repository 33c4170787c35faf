"""
End-to-end tests for /me, the employee directory and manager reassignment.
"""
from __future__ import annotations

from sqlalchemy import select

from crm_scope.models.org import Employee, Role
from crm_scope.security.registry import PermissionRegistry


def _move_to_department_of(api, emp_code: str, other_code: str) -> None:
    with api.session_factory() as db:
        employee = db.get(Employee, api.employees[emp_code])
        employee.department_id = db.get(Employee, api.employees[other_code]).department_id
        db.commit()


def _grant(api, role_code: str, module: str, action: str, scope: str) -> None:
    with api.session_factory() as db:
        registry = PermissionRegistry(db)
        role = db.scalars(select(Role).where(Role.code == role_code)).one()
        registry.grant(role.id, registry.ensure_permission(module, action, scope).id)
        db.commit()


def test_me_reports_fresh_grants(api):
    response = api.client.get("/me", headers=api.headers("E-1004"))

    assert response.status_code == 200
    body = response.json()
    assert body["employee_id"] == api.employees["E-1004"]
    assert body["role_code"] == "SALES_BDE"
    assert body["is_admin"] is False
    assert {"module": "leads", "action": "view", "scope": "own"} in body["grants"]


def test_me_for_admin(api):
    body = api.client.get("/me", headers=api.headers("E-0001")).json()

    assert body["is_admin"] is True
    assert body["grants"] == []


def test_employee_list_is_scoped(api):
    own = api.client.get("/employees", headers=api.headers("E-1004")).json()
    team = api.client.get("/employees", headers=api.headers("E-1002")).json()

    assert [row["id"] for row in own] == [api.employees["E-1004"]]
    assert {row["id"] for row in team} == {api.employees[c] for c in ("E-1002", "E-1003", "E-1004", "E-1005", "E-1006")}


def test_employee_outside_scope_is_403(api):
    response = api.client.get(f"/employees/{api.employees['E-1002']}", headers=api.headers("E-1004"))

    assert response.status_code == 403


def test_reportees(api):
    response = api.client.get(f"/employees/{api.employees['E-1003']}/reportees", headers=api.headers("E-1002"))

    assert response.status_code == 200
    assert response.json()["reportee_ids"] == sorted(api.employees[c] for c in ("E-1004", "E-1005"))


def test_reportees_reach_through_employees_outside_caller_scope(api):
    # E-1002 <- E-1003 <- E-1004, E-1005; E-1003 now sits in the product department.
    _move_to_department_of(api, "E-1003", "E-2001")

    response = api.client.get(f"/employees/{api.employees['E-1002']}/reportees", headers=api.headers("E-1001"))

    assert response.status_code == 200
    assert response.json()["reportee_ids"] == sorted(api.employees[c] for c in ("E-1004", "E-1005", "E-1006"))


def test_manager_change_rejects_cycles(api):
    response = api.client.patch(
        f"/employees/{api.employees['E-1002']}/manager",
        json={"manager_id": api.employees["E-1004"]},
        headers=api.headers("E-5001"),
    )

    assert response.status_code == 409


def test_manager_change_sees_cycles_through_other_departments(api):
    # The BDM is moved out of sales, yet making the BM report to a BDE still closes a loop.
    _grant(api, "SALES_HEAD", "employees", "manage", "department")
    _move_to_department_of(api, "E-1003", "E-2001")

    response = api.client.patch(
        f"/employees/{api.employees['E-1002']}/manager",
        json={"manager_id": api.employees["E-1004"]},
        headers=api.headers("E-1001"),
    )

    assert response.status_code == 409


def test_manager_change_reshapes_team_immediately(api):
    bde3 = api.employees["E-1006"]
    before = api.client.get("/employees", headers=api.headers("E-1003")).json()
    assert bde3 not in {row["id"] for row in before}

    response = api.client.patch(
        f"/employees/{bde3}/manager",
        json={"manager_id": api.employees["E-1003"]},
        headers=api.headers("E-5001"),
    )

    assert response.status_code == 200
    assert response.json()["manager_id"] == api.employees["E-1003"]
    after = api.client.get("/employees", headers=api.headers("E-1003")).json()
    assert bde3 in {row["id"] for row in after}


def test_manager_change_needs_manage_grant(api):
    response = api.client.patch(
        f"/employees/{api.employees['E-1006']}/manager",
        json={"manager_id": api.employees["E-1003"]},
        headers=api.headers("E-1002"),
    )

    assert response.status_code == 403
