from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm_scope.db.filters import load_unscoped
from crm_scope.db.session import get_db
from crm_scope.models.org import Employee
from crm_scope.schemas.org import EmployeeOut, GrantOut, ManagerUpdate, MeOut, ReporteesOut
from crm_scope.security.context import AuthzContext
from crm_scope.security.decorators import require_permission
from crm_scope.security.dependencies import get_authz, get_current_principal, require_object_access
from crm_scope.security.errors import HierarchyCycleError, HierarchyLookupError
from crm_scope.security.hierarchy import ReporteeResolver, SqlHierarchyStore, would_create_cycle
from crm_scope.security.scopes import Principal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["employees"])


@router.get("/me", response_model=MeOut)
def me(principal: Principal = Depends(get_current_principal)) -> MeOut:
    return MeOut(
        user_id=principal.user_id,
        employee_id=principal.employee_id,
        department_id=principal.department_id,
        role_code=principal.role_code,
        is_admin=principal.is_admin,
        grants=[GrantOut(**g.to_dict()) for g in principal.grants],
    )


@router.get("/employees", response_model=list[EmployeeOut])
def list_employees(db: Session = Depends(get_db)) -> list[Employee]:
    return list(db.scalars(select(Employee).order_by(Employee.id)).all())


@router.get("/employees/{id}", response_model=EmployeeOut)
def get_employee(id: int, db: Session = Depends(get_db), authz: AuthzContext = Depends(get_authz)) -> Employee:
    return require_object_access(load_unscoped(db, Employee, id), authz, "Employee")


@router.get("/employees/{id}/reportees", response_model=ReporteesOut)
def get_reportees(id: int, db: Session = Depends(get_db), authz: AuthzContext = Depends(get_authz)) -> ReporteesOut:
    require_object_access(load_unscoped(db, Employee, id), authz, "Employee")

    closure = ReporteeResolver(SqlHierarchyStore(db)).closure(id)
    # Only report the reportees this caller may see.
    visible = db.scalars(select(Employee).where(Employee.id.in_(sorted(closure)))).all() if closure else []
    return ReporteesOut(employee_id=id, reportee_ids=sorted(e.id for e in visible))


@router.patch("/employees/{id}/manager", response_model=EmployeeOut)
@require_permission("employees", "manage")
def change_manager(
    id: int,
    payload: ManagerUpdate,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> Employee:
    employee = require_object_access(load_unscoped(db, Employee, id), authz, "Employee")

    if payload.manager_id is not None and load_unscoped(db, Employee, payload.manager_id) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Manager not found")

    try:
        edges = SqlHierarchyStore(db).reporting_edges()
        if would_create_cycle(edges, employee.id, payload.manager_id):
            raise HierarchyCycleError(f"employee {employee.id} cannot report to {payload.manager_id}")
    except HierarchyCycleError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except HierarchyLookupError as exc:
        logger.error("Manager change aborted: hierarchy unreadable employee_id=%s", employee.id, exc_info=True)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Hierarchy unavailable") from exc

    employee.manager_id = payload.manager_id
    db.commit()
    logger.info("Manager changed employee_id=%s manager_id=%s by user_id=%s", employee.id, payload.manager_id, authz.user_id)
    return employee
