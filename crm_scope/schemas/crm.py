from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class LeadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str | None
    company: str | None
    source: str
    status: str
    owner_id: int | None
    department_id: int | None
    created_at: datetime


class LeadCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str | None = None
    company: str | None = None
    source: str = "Website"
    notes: str | None = None
    department_id: int | None = None


class LeadUpdate(BaseModel):
    status: str | None = None
    notes: str | None = None
    lost_reason: str | None = None


class LeadAssign(BaseModel):
    assignee_id: int


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    priority: str
    status: str
    due_date: date | None
    completed_at: datetime | None
    completion_note: str | None
    assignee_id: int | None
    creator_id: int | None
    lead_id: int | None
    project_id: int | None
    product_id: int | None


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    priority: str = "Medium"
    due_date: date | None = None
    assignee_id: int | None = None
    lead_id: int | None = None
    project_id: int | None = None
    product_id: int | None = None


class TaskUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    priority: str | None = None
    status: str | None = None
    completion_note: str | None = None
    due_date: date | None = None


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    status: str
    lead_id: int | None
    created_at: datetime


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category: str | None
    price: float | None
    status: str
    product_manager_id: int | None


class AttendanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    work_date: date
    check_in: datetime | None
    check_out: datetime | None
    status: str


class CheckIn(BaseModel):
    location: str | None = None


class EodReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    work_date: date
    content: str
    leads_count: int
    tasks_count: int


class EodCreate(BaseModel):
    content: str = Field(min_length=1)
    leads_count: int = Field(default=0, ge=0)
    tasks_count: int = Field(default=0, ge=0)
    work_date: date | None = None


class LeaveCreate(BaseModel):
    leave_type: str
    start_date: date
    end_date: date
    reason: str | None = None


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    leave_type: str
    start_date: date
    end_date: date
    reason: str | None
    status: str
    manager_note: str | None
    approved_by_id: int | None


class LeaveDecision(BaseModel):
    status: Literal["Approved", "Rejected"]
    manager_note: str | None = None


class SalesSummary(BaseModel):
    total_leads: int
    won_leads: int
    lost_leads: int
    active_leads: int
    conversion_rate: int


class BreakdownRow(BaseModel):
    key: str
    count: int


class OwnerBreakdownRow(BaseModel):
    name: str
    total: int
    won: int
    lost: int


class SalesReportOut(BaseModel):
    summary: SalesSummary
    status_breakdown: list[BreakdownRow]
    source_breakdown: list[BreakdownRow]
    owner_breakdown: list[OwnerBreakdownRow]
