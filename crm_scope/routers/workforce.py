from __future__ import annotations

import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm_scope.db.filters import load_unscoped
from crm_scope.db.session import get_db
from crm_scope.models.crm import Attendance, EodReport, LeaveRequest
from crm_scope.schemas.crm import (
    AttendanceOut,
    CheckIn,
    EodCreate,
    EodReportOut,
    LeaveCreate,
    LeaveDecision,
    LeaveRequestOut,
)
from crm_scope.security.context import AuthzContext
from crm_scope.security.dependencies import get_authz, require_employee_id, require_object_access

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workforce"])

ATTENDANCE_PAGE_SIZE = 100


@router.get("/attendance", response_model=list[AttendanceOut])
def list_attendance(db: Session = Depends(get_db)) -> list[Attendance]:
    stmt = select(Attendance).order_by(Attendance.work_date.desc(), Attendance.id).limit(ATTENDANCE_PAGE_SIZE)
    return list(db.scalars(stmt).all())


def _todays_attendance(db: Session, employee_id: int) -> Attendance | None:
    stmt = select(Attendance).where(Attendance.employee_id == employee_id, Attendance.work_date == date.today())
    return db.scalars(stmt.order_by(Attendance.id.desc())).first()


@router.post("/attendance/check-in", response_model=AttendanceOut, status_code=status.HTTP_201_CREATED)
def check_in(
    payload: CheckIn,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> Attendance:
    employee_id = require_employee_id(authz)
    if _todays_attendance(db, employee_id) is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Already checked in today")

    record = Attendance(
        employee_id=employee_id,
        work_date=date.today(),
        check_in=datetime.utcnow(),
        status="Present",
        location=payload.location,
    )
    db.add(record)
    db.commit()
    logger.info("Checked in employee_id=%s", employee_id)
    return record


@router.post("/attendance/check-out", response_model=AttendanceOut)
def check_out(db: Session = Depends(get_db), authz: AuthzContext = Depends(get_authz)) -> Attendance:
    employee_id = require_employee_id(authz)
    record = _todays_attendance(db, employee_id)
    if record is None or record.check_out is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active check-in found for today")

    record.check_out = datetime.utcnow()
    db.commit()
    logger.info("Checked out employee_id=%s", employee_id)
    return record


@router.get("/eod", response_model=list[EodReportOut])
def list_eod_reports(db: Session = Depends(get_db)) -> list[EodReport]:
    return list(db.scalars(select(EodReport).order_by(EodReport.work_date.desc(), EodReport.id)).all())


@router.post("/eod", response_model=EodReportOut, status_code=status.HTTP_201_CREATED)
def submit_eod_report(
    payload: EodCreate,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> EodReport:
    report = EodReport(
        employee_id=require_employee_id(authz),
        work_date=payload.work_date or date.today(),
        content=payload.content,
        leads_count=payload.leads_count,
        tasks_count=payload.tasks_count,
    )
    db.add(report)
    db.commit()
    return report


@router.get("/leaves", response_model=list[LeaveRequestOut])
def list_leaves(db: Session = Depends(get_db)) -> list[LeaveRequest]:
    return list(db.scalars(select(LeaveRequest).order_by(LeaveRequest.created_at.desc(), LeaveRequest.id)).all())


@router.post("/leaves", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
def apply_leave(
    payload: LeaveCreate,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> LeaveRequest:
    employee_id = require_employee_id(authz)
    if payload.end_date < payload.start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Leave cannot end before it starts")

    leave = LeaveRequest(employee_id=employee_id, status="Pending", **payload.model_dump())
    db.add(leave)
    db.commit()
    logger.info("Leave requested leave_id=%s employee_id=%s", leave.id, employee_id)
    return leave


@router.patch("/leaves/{id}/approve", response_model=LeaveRequestOut)
def decide_leave(
    id: int,
    payload: LeaveDecision,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> LeaveRequest:
    leave = load_unscoped(db, LeaveRequest, id)
    if leave is not None and leave.employee_id == authz.employee_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot decide your own leave request")
    leave = require_object_access(leave, authz, "Leave request")

    leave.status = payload.status
    leave.manager_note = payload.manager_note
    leave.approved_by_id = authz.employee_id
    leave.updated_at = datetime.utcnow()
    db.commit()
    return leave
