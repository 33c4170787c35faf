from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm_scope.db.filters import load_unscoped
from crm_scope.db.session import get_db
from crm_scope.models.crm import Task
from crm_scope.models.org import Employee
from crm_scope.schemas.crm import TaskCreate, TaskOut, TaskUpdate
from crm_scope.security.context import AuthzContext
from crm_scope.security.dependencies import get_authz, require_employee_id, require_object_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])

COMPLETED = "Completed"


@router.get("", response_model=list[TaskOut])
def list_tasks(db: Session = Depends(get_db)) -> list[Task]:
    return list(db.scalars(select(Task).order_by(Task.due_date, Task.id)).all())


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> Task:
    creator_id = require_employee_id(authz)
    assignee_id = payload.assignee_id or creator_id
    if db.get(Employee, assignee_id) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Assignee not found")

    task = Task(**payload.model_dump(exclude={"assignee_id"}), assignee_id=assignee_id, creator_id=creator_id)
    db.add(task)
    db.commit()
    logger.info("Task created task_id=%s assignee_id=%s by employee_id=%s", task.id, assignee_id, creator_id)
    return task


@router.get("/{id}", response_model=TaskOut)
def get_task(id: int, db: Session = Depends(get_db), authz: AuthzContext = Depends(get_authz)) -> Task:
    return require_object_access(load_unscoped(db, Task, id), authz, "Task")


@router.patch("/{id}", response_model=TaskOut)
def update_task(
    id: int,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> Task:
    task = require_object_access(load_unscoped(db, Task, id), authz, "Task")

    changes = payload.model_dump(exclude_unset=True)
    new_status = changes.pop("status", None)
    completion_note = changes.pop("completion_note", None)
    for field, value in changes.items():
        setattr(task, field, value)

    if new_status:
        if new_status == COMPLETED and task.status != COMPLETED:
            task.completed_at = datetime.utcnow()
            task.completion_note = completion_note or "No completion note provided"
        elif task.status == COMPLETED and new_status != COMPLETED:
            task.completed_at = None
            task.completion_note = None
        task.status = new_status

    db.commit()
    return task


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(id: int, db: Session = Depends(get_db), authz: AuthzContext = Depends(get_authz)) -> Response:
    task = require_object_access(load_unscoped(db, Task, id), authz, "Task")
    db.delete(task)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
