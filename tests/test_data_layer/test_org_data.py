"""
Tests for org-chart data access (ORM).
"""
from __future__ import annotations

from sqlalchemy import select

from crm_scope.models.org import Department, Employee


def _employee(code: str, dept: Department, manager: Employee | None = None) -> Employee:
    return Employee(
        emp_code=code,
        first_name=code,
        last_name="Test",
        email=f"{code.lower()}@example.com",
        department_id=dept.id,
        manager_id=manager.id if manager else None,
    )


def test_list_employees_ordered_by_id(db_session):
    dept = Department(name="Sales", code="SALES", description="Sales")
    db_session.add(dept)
    db_session.flush()

    e1 = _employee("E-1", dept)
    e2 = _employee("E-2", dept)
    db_session.add_all([e1, e2])
    db_session.commit()

    result = list(db_session.scalars(select(Employee).order_by(Employee.id)).all())

    assert [e.emp_code for e in result] == ["E-1", "E-2"]
    assert result[0].status == "active"
    assert result[0].full_name == "E-1 Test"


def test_manager_and_reportees_relationships(db_session):
    dept = Department(name="Sales", code="SALES")
    db_session.add(dept)
    db_session.flush()
    boss = _employee("E-1", dept)
    db_session.add(boss)
    db_session.flush()
    a = _employee("E-2", dept, boss)
    b = _employee("E-3", dept, boss)
    db_session.add_all([a, b])
    db_session.commit()

    db_session.expire_all()
    loaded = db_session.get(Employee, boss.id)

    assert sorted(e.emp_code for e in loaded.reportees) == ["E-2", "E-3"]
    assert db_session.get(Employee, a.id).manager.emp_code == "E-1"
