from __future__ import annotations

from datetime import date, datetime, timedelta
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm_scope.db.base import Base
from crm_scope.db.session import SessionLocal, engine
from crm_scope.models.crm import Attendance, EodReport, Lead, LeaveRequest, Product, Project, Task
from crm_scope.models.org import Department, Employee, Role, User
from crm_scope.security.registry import PermissionRegistry

logger = logging.getLogger(__name__)

DEPARTMENTS = [
    ("Administration", "ADMIN", "Central Management"),
    ("Sales Department", "SALES", "Lead generation and sales"),
    ("Product Department", "PRODUCT", "Tech and product development"),
    ("Project Department", "PROJECT", "Project management and execution"),
    ("Operation Department", "OPERATION", "Operations and HR"),
]

# (name, code, department code)
ROLES = [
    ("Admin", "ADMIN", "ADMIN"),
    ("Sales Head", "SALES_HEAD", "SALES"),
    ("Sales BM", "SALES_BM", "SALES"),
    ("Sales BDM", "SALES_BDM", "SALES"),
    ("Sales BDE", "SALES_BDE", "SALES"),
    ("Product Head", "PROD_HEAD", "PRODUCT"),
    ("Product Manager", "PROD_PM", "PRODUCT"),
    ("Product Developer", "PROD_DEV", "PRODUCT"),
    ("Project Head", "PROJ_HEAD", "PROJECT"),
    ("Project Manager", "PROJ_PM", "PROJECT"),
    ("Project Developer", "PROJ_DEV", "PROJECT"),
    ("Operations Head", "OPS_HEAD", "OPERATION"),
    ("Operation Manager", "OPS_MGR", "OPERATION"),
]

# Every (module, action, scope) the system knows about.
PERMISSION_CATALOGUE = {
    ("leads", "view"): ("all", "department", "team", "own"),
    ("leads", "edit"): ("all", "department", "team", "own"),
    ("leads", "create"): ("all",),
    ("leads", "assign"): ("all",),
    ("leads", "delete"): ("all",),
    ("tasks", "view"): ("all", "department", "team", "own"),
    ("tasks", "edit"): ("all", "department", "team", "own"),
    ("tasks", "create"): ("all",),
    ("tasks", "assign"): ("all",),
    ("tasks", "delete"): ("all",),
    ("projects", "view"): ("all", "department", "assigned"),
    ("projects", "edit"): ("all", "department", "assigned"),
    ("projects", "create"): ("all",),
    ("projects", "delete"): ("all",),
    ("products", "view"): ("all", "department", "own"),
    ("products", "edit"): ("all",),
    ("products", "create"): ("all",),
    ("products", "delete"): ("all",),
    ("eod", "view"): ("all", "department", "team", "own"),
    ("eod", "create"): ("own",),
    ("attendance", "view"): ("all", "department", "team", "own"),
    ("attendance", "create"): ("own",),
    ("attendance", "approve"): ("all", "department", "team"),
    ("employees", "view"): ("all", "department", "team", "own"),
    ("employees", "edit"): ("all", "department", "team", "own"),
    ("employees", "manage"): ("all",),
    ("reports", "generate"): ("all", "department", "team", "own"),
}

_HEAD_GRANTS = [
    ("leads", "view", "department"),
    ("leads", "edit", "department"),
    ("leads", "create", "all"),
    ("leads", "assign", "all"),
    ("leads", "delete", "all"),
    ("tasks", "view", "department"),
    ("tasks", "create", "all"),
    ("tasks", "edit", "department"),
    ("tasks", "delete", "all"),
    ("tasks", "assign", "all"),
    ("projects", "create", "all"),
    ("projects", "view", "department"),
    ("projects", "edit", "department"),
    ("projects", "delete", "all"),
    ("products", "view", "all"),
    ("products", "edit", "all"),
    ("products", "create", "all"),
    ("products", "delete", "all"),
    ("eod", "view", "department"),
    ("eod", "create", "own"),
    ("attendance", "view", "department"),
    ("attendance", "create", "own"),
    ("attendance", "approve", "department"),
    ("employees", "view", "department"),
    ("employees", "edit", "department"),
    ("reports", "generate", "department"),
]

_TEAM_LEAD_GRANTS = [
    ("leads", "view", "team"),
    ("leads", "edit", "team"),
    ("leads", "create", "all"),
    ("leads", "assign", "all"),
    ("tasks", "view", "team"),
    ("tasks", "create", "all"),
    ("tasks", "edit", "team"),
    ("tasks", "assign", "all"),
    ("eod", "view", "team"),
    ("eod", "create", "own"),
    ("attendance", "view", "team"),
    ("attendance", "create", "own"),
    ("attendance", "approve", "team"),
    ("reports", "generate", "team"),
    ("employees", "view", "team"),
]

_PROJECT_MANAGER_GRANTS = [
    ("tasks", "view", "department"),
    ("tasks", "edit", "department"),
    ("tasks", "create", "all"),
    ("projects", "view", "department"),
    ("projects", "edit", "department"),
    ("eod", "view", "department"),
    ("attendance", "view", "department"),
    ("attendance", "approve", "department"),
    ("employees", "view", "department"),
    ("reports", "generate", "department"),
]

_INDIVIDUAL_GRANTS = [
    ("leads", "view", "own"),
    ("leads", "edit", "own"),
    ("tasks", "view", "own"),
    ("tasks", "edit", "own"),
    ("eod", "view", "own"),
    ("eod", "create", "own"),
    ("attendance", "view", "own"),
    ("attendance", "create", "own"),
    ("employees", "view", "own"),
    ("projects", "view", "assigned"),
    ("reports", "generate", "own"),
]

ROLE_GRANTS: dict[str, list[tuple[str, str, str]]] = {
    "SALES_HEAD": _HEAD_GRANTS,
    "PROD_HEAD": _HEAD_GRANTS,
    "PROJ_HEAD": _HEAD_GRANTS,
    "OPS_HEAD": _HEAD_GRANTS,
    "SALES_BM": _TEAM_LEAD_GRANTS,
    "SALES_BDM": _TEAM_LEAD_GRANTS + [("projects", "view", "department")],
    "PROD_PM": _PROJECT_MANAGER_GRANTS,
    "PROJ_PM": _PROJECT_MANAGER_GRANTS,
    "OPS_MGR": [
        ("attendance", "view", "all"),
        ("attendance", "approve", "all"),
        ("employees", "view", "department"),
        ("employees", "manage", "all"),
        ("eod", "view", "department"),
        ("reports", "generate", "department"),
    ],
    "SALES_BDE": _INDIVIDUAL_GRANTS,
    "PROD_DEV": _INDIVIDUAL_GRANTS,
    "PROJ_DEV": _INDIVIDUAL_GRANTS,
}

# (emp code, first, last, role code, manager emp code)
ORG_CHART = [
    ("E-0001", "Super", "Admin", "ADMIN", None),
    ("E-1001", "Sara", "Head", "SALES_HEAD", None),
    ("E-1002", "Bala", "Manager", "SALES_BM", "E-1001"),
    ("E-1003", "Dev", "Mehta", "SALES_BDM", "E-1002"),
    ("E-1004", "Esha", "Rao", "SALES_BDE", "E-1003"),
    ("E-1005", "Farhan", "Ali", "SALES_BDE", "E-1003"),
    ("E-1006", "Gita", "Nair", "SALES_BDE", "E-1002"),
    ("E-2001", "Priya", "Shah", "PROD_PM", None),
    ("E-2002", "Kiran", "Das", "PROD_DEV", "E-2001"),
    ("E-5001", "Omar", "Khan", "OPS_MGR", None),
]


def init_db() -> None:
    """
    Create tables + seed demo data.

    Seeding runs once per database: a non-empty `departments` table means the
    data is already there.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        seed(db)
        db.commit()
        logger.info("Seeded demo organisation")


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Department.id).limit(1)).first() is not None


def seed(db: Session) -> dict[str, Employee]:
    """Seed the full demo dataset; returns employees keyed by emp code."""

    departments = seed_departments(db)
    roles = seed_roles(db, departments)
    seed_permissions(db, roles)
    employees = seed_org_chart(db, departments, roles)
    seed_sample_records(db, employees)
    db.flush()
    return employees


def seed_departments(db: Session) -> dict[str, Department]:
    departments = {code: Department(name=name, code=code, description=desc) for name, code, desc in DEPARTMENTS}
    db.add_all(departments.values())
    db.flush()
    return departments


def seed_roles(db: Session, departments: dict[str, Department]) -> dict[str, Role]:
    roles = {
        code: Role(name=name, code=code, department_id=None if code == "ADMIN" else departments[dept].id)
        for name, code, dept in ROLES
    }
    db.add_all(roles.values())
    db.flush()
    return roles


def seed_permissions(db: Session, roles: dict[str, Role]) -> None:
    registry = PermissionRegistry(db)

    catalogue = {}
    for (module, action), scopes in PERMISSION_CATALOGUE.items():
        for scope in scopes:
            catalogue[(module, action, scope)] = registry.ensure_permission(module, action, scope)

    for code, grants in ROLE_GRANTS.items():
        for module, action, scope in grants:
            registry.grant(roles[code].id, catalogue[(module, action, scope)].id)

    # ADMIN bypasses checks; its matrix row still lists the broadest scope of each grant.
    for (module, action), scopes in PERMISSION_CATALOGUE.items():
        registry.grant(roles["ADMIN"].id, catalogue[(module, action, scopes[0])].id)


def seed_org_chart(db: Session, departments: dict[str, Department], roles: dict[str, Role]) -> dict[str, Employee]:
    employees: dict[str, Employee] = {}

    for emp_code, first, last, role_code, manager_code in ORG_CHART:
        role = roles[role_code]
        dept_id = role.department_id or departments["ADMIN"].id
        email = f"{first}.{last}@example.com".lower()

        user = User(email=email, role_id=role.id, department_id=dept_id, is_active=True)
        db.add(user)
        db.flush()

        employee = Employee(
            emp_code=emp_code,
            first_name=first,
            last_name=last,
            email=email,
            department_id=dept_id,
            role_id=role.id,
            manager_id=employees[manager_code].id if manager_code else None,
            user_id=user.id,
        )
        db.add(employee)
        db.flush()
        employees[emp_code] = employee

    return employees


def seed_sample_records(db: Session, employees: dict[str, Employee]) -> None:
    today = date.today()
    sales_team = [employees[c] for c in ("E-1002", "E-1003", "E-1004", "E-1005", "E-1006")]

    leads = []
    for i, owner in enumerate(sales_team * 2, start=1):
        leads.append(
            Lead(
                name=f"Lead {i}",
                email=f"lead{i}@client.example.com",
                company=f"Client {i}",
                source=("Website", "Referral", "Cold Call")[i % 3],
                status=("New", "Contacted", "Won", "Lost")[i % 4],
                owner_id=owner.id,
                department_id=owner.department_id,
            )
        )
    db.add_all(leads)
    db.flush()

    product = Product(name="CRM Suite", category="Software", price=4999, product_manager_id=employees["E-2001"].id)
    db.add(product)
    db.add(Project(name="Client 3 rollout", status="In Progress", lead_id=leads[2].id))
    db.flush()

    for i, emp in enumerate(sales_team):
        db.add(
            Task(
                title=f"Follow up on {leads[i].name}",
                assignee_id=emp.id,
                creator_id=emp.manager_id or emp.id,
                lead_id=leads[i].id,
                due_date=today + timedelta(days=i + 1),
            )
        )
        db.add(
            Attendance(
                employee_id=emp.id,
                work_date=today,
                check_in=datetime.combine(today, datetime.min.time()) + timedelta(hours=9),
                status="Present",
                location="Office",
            )
        )
        db.add(EodReport(employee_id=emp.id, work_date=today, content="Client calls and follow ups", leads_count=2))

    db.add(
        LeaveRequest(
            employee_id=employees["E-1004"].id,
            leave_type="Casual",
            start_date=today + timedelta(days=7),
            end_date=today + timedelta(days=8),
            reason="Family function",
        )
    )
