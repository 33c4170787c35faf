from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm_scope.db.filters import load_unscoped
from crm_scope.db.session import get_db
from crm_scope.models.crm import Lead
from crm_scope.models.org import Department, Employee
from crm_scope.schemas.crm import LeadAssign, LeadCreate, LeadOut, LeadUpdate
from crm_scope.security.context import AuthzContext
from crm_scope.security.dependencies import get_authz, require_employee_id, require_object_access
from crm_scope.security.scopes import Scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["leads"])


@router.get("", response_model=list[LeadOut])
def list_leads(db: Session = Depends(get_db)) -> list[Lead]:
    # Scope and any honored departmentId/ownerId narrowing are applied by crm_scope.db.filters.
    return list(db.scalars(select(Lead).order_by(Lead.id)).all())


@router.post("", response_model=LeadOut, status_code=status.HTTP_201_CREATED)
def create_lead(
    payload: LeadCreate,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> Lead:
    """
    Create a lead owned by the caller.

    The department defaults to the caller's; a different one is only honored
    when the caller's create scope is `all`.
    """

    owner_id = require_employee_id(authz)
    department_id = authz.principal.department_id
    if authz.decision.scope is Scope.ALL and payload.department_id is not None:
        if db.get(Department, payload.department_id) is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Department not found")
        department_id = payload.department_id

    lead = Lead(**payload.model_dump(exclude={"department_id"}), owner_id=owner_id, department_id=department_id)
    db.add(lead)
    db.commit()
    logger.info("Lead created lead_id=%s owner_id=%s department_id=%s", lead.id, owner_id, department_id)
    return lead


@router.get("/{id}", response_model=LeadOut)
def get_lead(id: int, db: Session = Depends(get_db), authz: AuthzContext = Depends(get_authz)) -> Lead:
    return require_object_access(load_unscoped(db, Lead, id), authz, "Lead")


@router.patch("/{id}", response_model=LeadOut)
def update_lead(
    id: int,
    payload: LeadUpdate,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> Lead:
    lead = require_object_access(load_unscoped(db, Lead, id), authz, "Lead")

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(lead, field, value)
    db.commit()
    return lead


@router.post("/{id}/assign", response_model=LeadOut)
def assign_lead(
    id: int,
    payload: LeadAssign,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> Lead:
    lead = require_object_access(load_unscoped(db, Lead, id), authz, "Lead")

    assignee = db.get(Employee, payload.assignee_id)
    if assignee is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Assignee not found")

    lead.owner_id = assignee.id
    db.commit()
    logger.info("Lead reassigned lead_id=%s owner_id=%s by user_id=%s", lead.id, assignee.id, authz.user_id)
    return lead


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead(id: int, db: Session = Depends(get_db), authz: AuthzContext = Depends(get_authz)) -> Response:
    lead = require_object_access(load_unscoped(db, Lead, id), authz, "Lead")
    db.delete(lead)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
